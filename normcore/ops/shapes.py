# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shape inference for layer normalization.

Runs before any output memory exists: it only looks at shapes, never at
tensor contents. Inputs are ``[x, weight]`` or ``[x, weight, bias]``; the
weight covers every dimension of ``x`` from the axis to the end.

A weight for the last axis alone may also arrive as a 2-D ``[n, 1]`` tensor,
an older representation of 1-D tensors. That case is handled by
``_effective_param_shape`` and nowhere else.
"""

from typing import Sequence

from normcore.ops.axis import resolve_axis
from normcore.ops.exceptions import ConfigurationError, ShapeMismatchError

Shape = tuple[int, ...]


def _effective_param_shape(param_shape: Shape, axis: int, input_rank: int, label: str) -> Shape:
    """Return the shape a weight or bias covers, unwrapping the legacy ``[n, 1]`` form."""
    if axis == input_rank - 1 and len(param_shape) == 2:
        if param_shape[1] != 1:
            raise ShapeMismatchError(
                f"LayerNorm: 2-D {label} for the last axis must have trailing dimension 1, "
                f"got shape {list(param_shape)}",
                expected=1,
                actual=param_shape[1],
                index=1,
            )
        return param_shape[:1]
    return param_shape


def validate_shapes(input_shapes: Sequence[Sequence[int]], axis: int) -> list[Shape]:
    """
    Check input/weight/bias compatibility and infer the output shape.

    Args:
        input_shapes: Shapes of ``[x, weight]`` or ``[x, weight, bias]``.
        axis: The configured axis. Negative values are resolved against the
            rank of ``x`` here without being cached.

    Returns:
        A single-element list holding the output shape, always equal to the
        shape of ``x``.

    Raises:
        ConfigurationError: Wrong number of inputs or axis out of range.
        ShapeMismatchError: Rank or dimension disagreement.
    """
    if not 2 <= len(input_shapes) <= 3:
        raise ConfigurationError(
            "LayerNorm: require two (x, weight) or three (x, weight, bias) inputs, "
            f"got {len(input_shapes)}"
        )

    x_shape = tuple(int(d) for d in input_shapes[0])
    w_shape = tuple(int(d) for d in input_shapes[1])
    x_ndims = len(x_shape)
    axis = resolve_axis(axis, x_ndims)

    w_effective = _effective_param_shape(w_shape, axis, x_ndims, "weight")
    if x_ndims - axis != len(w_effective):
        raise ShapeMismatchError(
            "LayerNorm: shape of weight does not match with given axis and shape of input: "
            f"expected weight rank {x_ndims - axis} (input rank {x_ndims} - axis {axis}), "
            f"got {len(w_effective)} (weight shape {list(w_shape)})",
            expected=x_ndims - axis,
            actual=len(w_effective),
        )
    for i, w_dim in enumerate(w_effective):
        if x_shape[axis + i] != w_dim:
            raise ShapeMismatchError(
                "LayerNorm: weight dimensions does not match with input dimensions: "
                f"weight dim {i} expected {x_shape[axis + i]} (input dim {axis + i}), got {w_dim}",
                expected=x_shape[axis + i],
                actual=w_dim,
                index=i,
            )

    if len(input_shapes) == 3:
        b_shape = tuple(int(d) for d in input_shapes[2])
        b_effective = _effective_param_shape(b_shape, axis, x_ndims, "bias")
        if len(b_effective) != len(w_effective):
            raise ShapeMismatchError(
                "LayerNorm: shape of weight does not match with shape of bias: "
                f"expected bias rank {len(w_effective)}, got {len(b_effective)} "
                f"(bias shape {list(b_shape)})",
                expected=len(w_effective),
                actual=len(b_effective),
            )
        for i, (w_dim, b_dim) in enumerate(zip(w_effective, b_effective)):
            if w_dim != b_dim:
                raise ShapeMismatchError(
                    "LayerNorm: bias dimensions does not match with weight dimensions: "
                    f"bias dim {i} expected {w_dim}, got {b_dim}",
                    expected=w_dim,
                    actual=b_dim,
                    index=i,
                )

    return [x_shape]


def split_sizes(shape: Sequence[int], axis: int) -> tuple[int, int]:
    """
    Return ``(loops, norm_size)``: the product of the dimensions before the
    resolved axis and the product of the dimensions from it to the end.
    """
    loops = 1
    for d in shape[:axis]:
        loops *= int(d)
    norm_size = 1
    for d in shape[axis:]:
        norm_size *= int(d)
    return loops, norm_size
