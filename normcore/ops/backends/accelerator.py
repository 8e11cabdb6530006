# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Dedicated-accelerator backend.

The accelerator graph takes layer normalization as one fused primitive with
three inputs (x, gamma, beta), three outputs (y, mean, variance) and explicit
``begin_norm_axis`` / ``begin_params_axis`` attributes.

The accelerator's graph cannot express the case where the normalization axis
is the last dimension: a 1-D gamma/beta there arrives as a 2-D ``[n, 1]``
tensor, which the fused primitive does not accept. Both the capability query
and ``build_node`` reject that case.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import torch
import torch.nn.functional as F

from normcore.ops.exceptions import ConfigurationError
from normcore.ops.interfaces import BackendBase, BackendId, TensorWrapper
from normcore.ops.registry import register_backend


@dataclass(frozen=True)
class TensorDesc:
    shape: tuple[int, ...]
    dtype: torch.dtype = torch.float32
    layout: str = "NCHW"


@dataclass(frozen=True)
class DataOp:
    """Graph input fed directly from a named tensor."""

    name: str


@dataclass(frozen=True)
class AcceleratorNode:
    """A node of the accelerator graph; ``op`` is opaque to this package."""

    op: Any


@dataclass
class FusedLayerNormOp:
    """The fused layer normalization primitive and its bindings."""

    name: str
    begin_norm_axis: int
    begin_params_axis: int
    epsilon: float
    inputs: dict[str, tuple[AcceleratorNode, str]] = field(default_factory=dict)
    input_descs: dict[str, TensorDesc] = field(default_factory=dict)
    output_descs: dict[str, TensorDesc] = field(default_factory=dict)

    def run(
        self,
        x: torch.Tensor,
        gamma: torch.Tensor,
        beta: torch.Tensor,
    ) -> tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        """Evaluate the primitive; returns ``(y, mean, variance)``."""
        norm_dims = tuple(range(self.begin_norm_axis, x.dim()))
        params_shape = tuple(x.shape[self.begin_params_axis:])
        y = F.layer_norm(
            x,
            tuple(x.shape[self.begin_norm_axis:]),
            gamma.reshape(params_shape),
            beta.reshape(params_shape),
            self.epsilon,
        )
        variance, mean = torch.var_mean(x, dim=norm_dims, correction=0, keepdim=True)
        return y, mean, variance


class AcceleratorBackend(BackendBase):
    """Maps the operator onto the accelerator's fused layer normalization primitive."""

    backend_id = BackendId.ACCELERATOR

    def supports(self, axis: int, rank: Optional[int] = None) -> bool:
        if rank is not None and axis < 0:
            axis += rank
        return axis != -1 and (rank is None or axis != rank - 1)

    def build_node(
        self,
        wrappers: Sequence[TensorWrapper],
        nodes: Sequence[AcceleratorNode],
        axis: int,
        epsilon: float,
        name: str = "layer_norm",
    ) -> AcceleratorNode:
        """
        Build the fused primitive from three wrapped inputs and three upstream nodes.

        Raises:
            ConfigurationError: Wrong number of wrappers or nodes, or ``axis``
                is the last dimension of the input.
        """
        if len(wrappers) != 3:
            raise ConfigurationError(
                f"LayerNorm/accelerator: requires three input wrappers, got {len(wrappers)}"
            )
        if len(nodes) != 3:
            raise ConfigurationError(
                f"LayerNorm/accelerator: requires three input nodes, got {len(nodes)}"
            )

        x_wrapper, gamma_wrapper, beta_wrapper = wrappers
        if not self.supports(axis, len(x_wrapper.shape)):
            raise ConfigurationError(
                "LayerNorm: accelerator does not support axis set as last axis "
                f"(axis={axis}, input rank={len(x_wrapper.shape)})"
            )

        op = FusedLayerNormOp(
            name=name,
            begin_norm_axis=axis,
            begin_params_axis=axis,
            epsilon=epsilon,
        )
        for slot, wrapper, node in zip(("x", "gamma", "beta"), wrappers, nodes):
            op.inputs[slot] = (node, wrapper.name)
            op.input_descs[slot] = TensorDesc(shape=wrapper.shape, dtype=wrapper.dtype)
        for slot in ("y", "mean", "variance"):
            op.output_descs[slot] = TensorDesc(shape=(), dtype=torch.float32)

        return AcceleratorNode(op=op)

    def execute(
        self,
        inputs: Sequence[torch.Tensor],
        output: torch.Tensor,
        axis: int,
        epsilon: float,
    ) -> None:
        x, gamma = inputs[0], inputs[1]
        beta = inputs[2] if len(inputs) == 3 else torch.zeros_like(gamma)

        names = ("x", "gamma", "beta")
        tensors = (x, gamma, beta)
        wrappers = [TensorWrapper.from_tensor(n, t) for n, t in zip(names, tensors)]
        nodes = [AcceleratorNode(op=DataOp(name=n)) for n in names]
        node = self.build_node(wrappers, nodes, axis, epsilon)

        with torch.no_grad():
            y, _, _ = node.op.run(x, gamma, beta)
        output.copy_(y)


register_backend(BackendId.ACCELERATOR, AcceleratorBackend)
