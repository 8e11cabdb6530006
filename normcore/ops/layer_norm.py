# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Layer normalization operator, as the surrounding engine drives it.

Lifecycle:
  1. construction   : axis/epsilon fixed from the configuration record
  2. shape inference: ``get_memory_shapes`` before any memory is allocated
  3. finalize       : axis resolved against the input rank and cached,
                       backend selected once
  4. forward        : per request; stateless apart from the cached axis

Capability queries (``support_backend``) and the backend-native node builders
(``init_graph``, ``init_accelerator``, ``init_gpu``) can be called by the
engine while partitioning the graph.
"""

import logging
from typing import Any, Mapping, NamedTuple, Optional, Sequence, Union

import torch
import torch.fx as fx

from normcore.config.schema import BackendConfig, LayerNormConfig
from normcore.ops.axis import resolve_axis
from normcore.ops.backends.accelerator import AcceleratorBackend, AcceleratorNode
from normcore.ops.backends.gpu import GpuBackend, GpuLayerNormNode
from normcore.ops.backends.graph import GraphCompilerBackend
from normcore.ops.dispatcher import BackendDispatcher
from normcore.ops.exceptions import ConfigurationError, ShapeMismatchError
from normcore.ops.interfaces import BackendBase, BackendId, TensorWrapper
from normcore.ops.shapes import Shape, validate_shapes

logger = logging.getLogger(__name__)


class ShapeInference(NamedTuple):
    outputs: list[Shape]
    success: bool


class LayerNormOperator:
    """
    Layer normalization over the dimensions from ``axis`` to the end.

    Args:
        params: ``LayerNormConfig`` or a mapping with the recognized keys
            ``axis`` (default -1) and ``epsilon`` (default 1e-5).
        backend_config: Target preference and feature overrides.
        name: Name used for backend-native nodes and log context.
    """

    def __init__(
        self,
        params: Union[LayerNormConfig, Mapping[str, Any], None] = None,
        backend_config: Optional[BackendConfig] = None,
        name: str = "layer_norm",
    ) -> None:
        if params is None:
            params = LayerNormConfig()
        elif not isinstance(params, LayerNormConfig):
            params = LayerNormConfig.model_validate(dict(params))
        self.params = params
        self.name = name
        self.dispatcher = BackendDispatcher(backend_config)
        self._resolved_axis: Optional[int] = None
        self._rank: Optional[int] = None
        self._backend: Optional[BackendBase] = None

    @property
    def epsilon(self) -> float:
        return self.params.epsilon

    @property
    def axis(self) -> int:
        """The resolved axis after finalize, the configured one before."""
        return self._resolved_axis if self._resolved_axis is not None else self.params.axis

    @property
    def backend(self) -> Optional[BackendBase]:
        return self._backend

    def support_backend(self, backend_id: Union[BackendId, str]) -> bool:
        return self.dispatcher.supports(backend_id, self.axis, self._rank)

    def get_memory_shapes(
        self,
        input_shapes: Sequence[Sequence[int]],
        required_outputs: int = 1,
    ) -> ShapeInference:
        """
        Validate shapes and infer the single output shape.

        Also checks that the current target has a backend for this axis, so
        configuration errors surface here rather than at forward time.
        """
        outputs = validate_shapes(input_shapes, self.axis)
        rank = len(outputs[0])
        self.dispatcher.select(resolve_axis(self.axis, rank), rank)
        return ShapeInference(outputs=outputs, success=True)

    def finalize(self, inputs: Sequence[torch.Tensor]) -> None:
        """
        Resolve the axis against the rank of ``inputs[0]`` and select the backend.

        The first call fixes both for the operator's lifetime. Calling again
        with an input of another rank is a contract violation.
        """
        rank = inputs[0].dim()
        if self._resolved_axis is None:
            self._resolved_axis = resolve_axis(self.params.axis, rank)
            self._rank = rank
            self._backend = self.dispatcher.select(self._resolved_axis, rank)
            logger.info(
                "backend_selected",
                extra={
                    "op": self.name,
                    "backend": self._backend.backend_id.value,
                    "target": self.dispatcher.target.value,
                    "axis": self._resolved_axis,
                    "rank": rank,
                },
            )
        elif rank != self._rank:
            raise ConfigurationError(
                f"LayerNorm: finalize called with input rank {rank}, "
                f"but axis was already resolved for rank {self._rank}"
            )

    def forward(self, inputs: Sequence[torch.Tensor], outputs: Sequence[torch.Tensor]) -> None:
        """Normalize ``inputs[0]`` into ``outputs[0]`` with the selected backend."""
        if self._backend is None or self._resolved_axis is None:
            raise ConfigurationError("LayerNorm: forward called before finalize")
        if not 2 <= len(inputs) <= 3:
            raise ConfigurationError(
                f"LayerNorm: require two (x, weight) or three (x, weight, bias) inputs, got {len(inputs)}"
            )
        if tuple(outputs[0].shape) != tuple(inputs[0].shape):
            raise ShapeMismatchError(
                f"LayerNorm: output shape {list(outputs[0].shape)} does not match "
                f"input shape {list(inputs[0].shape)}",
            )
        self.dispatcher.forward(self._backend, inputs, outputs[0], self._resolved_axis, self.epsilon)

    def __call__(
        self,
        x: torch.Tensor,
        weight: torch.Tensor,
        bias: Optional[torch.Tensor] = None,
    ) -> torch.Tensor:
        """Convenience path: infer, finalize, allocate and run in one call."""
        inputs = [x, weight] if bias is None else [x, weight, bias]
        self.get_memory_shapes([tuple(t.shape) for t in inputs])
        self.finalize(inputs)
        output = torch.empty_like(x)
        self.forward(inputs, [output])
        return output

    def init_graph(
        self,
        wrappers: Sequence[TensorWrapper],
        nodes: Sequence[fx.Node],
        graph: fx.Graph,
    ) -> fx.Node:
        backend = self.dispatcher.backend(BackendId.GRAPH_COMPILER)
        assert isinstance(backend, GraphCompilerBackend)
        return backend.build_node(graph, wrappers, nodes, self.axis, self.epsilon)

    def init_accelerator(
        self,
        wrappers: Sequence[TensorWrapper],
        nodes: Sequence[AcceleratorNode],
    ) -> AcceleratorNode:
        backend = self.dispatcher.backend(BackendId.ACCELERATOR)
        assert isinstance(backend, AcceleratorBackend)
        return backend.build_node(wrappers, nodes, self.axis, self.epsilon, name=self.name)

    def init_gpu(self, wrappers: Sequence[TensorWrapper]) -> GpuLayerNormNode:
        backend = self.dispatcher.backend(BackendId.GPU)
        assert isinstance(backend, GpuBackend)
        return backend.build_node(wrappers, self.axis, self.epsilon)


def create_layer_norm(
    params: Union[LayerNormConfig, Mapping[str, Any], None] = None,
    backend_config: Optional[BackendConfig] = None,
    name: str = "layer_norm",
) -> LayerNormOperator:
    """Factory used by the engine to instantiate the operator."""
    return LayerNormOperator(params, backend_config=backend_config, name=name)
