# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Parallel-compute backend.

Three passes over the input viewed as ``loops x norm_size``:
  1. mean        = (1 / norm_size) * X @ ones            (matrix-vector product)
  2. mean_square = (1 / norm_size) * (X - mean)^2 @ ones (squared deviations, then the same reduction)
  3. y           = (X - mean) / sqrt(mean_square + eps) * scale + bias

Single precision only; the dispatcher sends any other dtype to the reference path.
"""

import logging
from typing import Sequence

import torch

from normcore.ops.interfaces import BackendBase, BackendId
from normcore.ops.registry import register_backend
from normcore.ops.shapes import split_sizes

logger = logging.getLogger(__name__)


def _gemv(matrix: torch.Tensor, vector: torch.Tensor, alpha: float) -> torch.Tensor:
    return torch.mv(matrix, vector) * alpha


class ParallelBackend(BackendBase):
    backend_id = BackendId.PARALLEL

    def execute(
        self,
        inputs: Sequence[torch.Tensor],
        output: torch.Tensor,
        axis: int,
        epsilon: float,
    ) -> None:
        x, scale = inputs[0], inputs[1]
        loops, norm_size = split_sizes(x.shape, axis)
        inv_norm_size = 1.0 / norm_size
        logger.debug(
            "parallel_kernels",
            extra={"loops": loops, "norm_size": norm_size},
        )

        with torch.no_grad():
            rows = x.reshape(loops, norm_size)
            one = torch.ones(norm_size, dtype=torch.float32, device=x.device)

            mean = _gemv(rows, one, inv_norm_size)
            centered = rows - mean.unsqueeze(1)
            tmp = centered * centered
            mean_square = _gemv(tmp, one, inv_norm_size)

            y = centered / torch.sqrt(mean_square.unsqueeze(1) + epsilon)
            y = y * scale.reshape(1, norm_size)
            if len(inputs) == 3:
                y = y + inputs[2].reshape(1, norm_size)
            output.copy_(y.reshape(x.shape))


register_backend(BackendId.PARALLEL, ParallelBackend)
