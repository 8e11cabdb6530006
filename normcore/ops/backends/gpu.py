# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
GPU backend.

The node is parameterized by ``(axis, epsilon, loops)`` where ``loops`` is the
product of the input dimensions before the axis, computed once when the node
is built. The fused kernel then treats the input as ``loops`` rows.

Inputs living on the host are copied to the configured device; the result is
copied back to wherever the output tensor lives.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import torch
import torch.nn.functional as F

from normcore.ops.axis import resolve_axis
from normcore.ops.interfaces import BackendBase, BackendId, TensorWrapper
from normcore.ops.registry import register_backend
from normcore.ops.shapes import split_sizes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GpuLayerNormNode:
    axis: int
    epsilon: float
    loops: int
    device: str = "cuda"

    def forward(self, inputs: Sequence[torch.Tensor], outputs: Sequence[torch.Tensor]) -> None:
        x = inputs[0].to(self.device)
        norm_size = x.numel() // self.loops
        rows = x.reshape(self.loops, norm_size)
        weight = inputs[1].to(self.device).reshape(norm_size)
        bias = inputs[2].to(self.device).reshape(norm_size) if len(inputs) == 3 else None

        with torch.no_grad():
            y = F.layer_norm(rows, (norm_size,), weight, bias, self.epsilon)
        outputs[0].copy_(y.reshape(x.shape))

        if x.is_cuda:
            torch.cuda.synchronize(x.device)


class GpuBackend(BackendBase):
    """Runs a fused layer normalization kernel on ``config.gpu_device``."""

    backend_id = BackendId.GPU
    supported_dtypes = frozenset({torch.float32, torch.float16})

    def build_node(
        self,
        wrappers: Sequence[TensorWrapper],
        axis: int,
        epsilon: float,
    ) -> GpuLayerNormNode:
        shape = wrappers[0].shape
        axis = resolve_axis(axis, len(shape))
        loops, _ = split_sizes(shape, axis)
        node = GpuLayerNormNode(axis=axis, epsilon=epsilon, loops=loops, device=self.config.gpu_device)
        logger.debug(
            "gpu_node_built",
            extra={"axis": axis, "loops": loops, "device": node.device},
        )
        return node

    def execute(
        self,
        inputs: Sequence[torch.Tensor],
        output: torch.Tensor,
        axis: int,
        epsilon: float,
    ) -> None:
        node = self.build_node([TensorWrapper.from_tensor("x", inputs[0])], axis, epsilon)
        node.forward(inputs, [output])


register_backend(BackendId.GPU, GpuBackend)
