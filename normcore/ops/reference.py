# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Reference layer normalization.

This is the ground truth every backend is compared against, and the path the
dispatcher falls back to for precisions a backend does not handle.

For a resolved axis, the input is viewed as ``loops`` independent groups of
``norm_size`` elements (``loops`` = product of the leading dimensions,
``norm_size`` = product of the rest). Per group:

    mean = sum(x) / norm_size
    var  = sum((x - mean) ** 2) / norm_size          (population variance)
    y    = (x - mean) / sqrt(var + eps) * scale + bias

Statistics are accumulated in float64 whatever the input dtype; the result is
cast to the output dtype once at the end.
"""

from typing import Optional, Sequence

import torch

from normcore.ops.shapes import split_sizes


def layer_norm_reference(
    x: torch.Tensor,
    weight: torch.Tensor,
    bias: Optional[torch.Tensor],
    axis: int,
    epsilon: float,
) -> torch.Tensor:
    """
    Normalize ``x`` over the dimensions starting at the resolved ``axis``.

    Args:
        x: Input tensor of any floating dtype.
        weight: Scale covering ``x.shape[axis:]`` (legacy ``[n, 1]`` accepted).
        bias: Optional shift with the same layout as ``weight``. Zero when absent.
        axis: Resolved, non-negative axis.
        epsilon: Added to the variance before the square root.

    Returns:
        A new tensor with the shape and dtype of ``x``.
    """
    loops, norm_size = split_sizes(x.shape, axis)

    groups = x.detach().to(dtype=torch.float64).reshape(loops, norm_size)
    mean = groups.sum(dim=1, keepdim=True) / norm_size
    centered = groups - mean
    var = (centered * centered).sum(dim=1, keepdim=True) / norm_size
    normalized = centered / torch.sqrt(var + epsilon)

    scale = weight.detach().to(device=groups.device, dtype=torch.float64).reshape(1, norm_size)
    result = normalized * scale
    if bias is not None:
        shift = bias.detach().to(device=groups.device, dtype=torch.float64).reshape(1, norm_size)
        result = result + shift

    return result.reshape(x.shape).to(dtype=x.dtype)


def run_reference(
    inputs: Sequence[torch.Tensor],
    output: torch.Tensor,
    axis: int,
    epsilon: float,
) -> None:
    """Run the reference path on ``[x, weight(, bias)]`` and write into ``output``."""
    bias = inputs[2] if len(inputs) == 3 else None
    result = layer_norm_reference(inputs[0], inputs[1], bias, axis, epsilon)
    output.copy_(result.to(device=output.device, dtype=output.dtype))
