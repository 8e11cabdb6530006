# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Graph-compiler backend built on ``torch.fx``.

Layer normalization is expressed as a small graph:

    mvn(x, axes=[axis .. rank), normalize_variance, eps inside sqrt)
      → mul(scale)
      → add(bias)              (only when a bias input exists)

When the normalization group is the last axis alone, scale and bias are
reshaped to ``[1, ..., 1, -1]`` first so that a 1-D (or legacy ``[n, 1]``)
parameter broadcasts along the last dimension.
"""

import logging
import operator
from typing import Optional, Sequence

import torch
import torch.fx as fx

from normcore.config.schema import BackendConfig
from normcore.ops.axis import resolve_axis
from normcore.ops.exceptions import ConfigurationError
from normcore.ops.interfaces import BackendBase, BackendId, TensorWrapper
from normcore.ops.registry import register_backend

logger = logging.getLogger(__name__)


def mean_variance_normalize(
    x: torch.Tensor,
    axes: tuple[int, ...],
    normalize_variance: bool = True,
    eps: float = 1e-9,
    eps_inside_sqrt: bool = True,
) -> torch.Tensor:
    """Subtract the mean over ``axes`` and, optionally, divide by the standard deviation."""
    mean = x.mean(dim=axes, keepdim=True)
    centered = x - mean
    if not normalize_variance:
        return centered
    var = (centered * centered).mean(dim=axes, keepdim=True)
    if eps_inside_sqrt:
        return centered / torch.sqrt(var + eps)
    return centered / (torch.sqrt(var) + eps)


class GraphCompilerBackend(BackendBase):
    """Composes mvn, mul and add nodes into a ``torch.fx`` graph."""

    backend_id = BackendId.GRAPH_COMPILER

    def __init__(self, config: Optional[BackendConfig] = None) -> None:
        super().__init__(config)
        # Compiled modules keyed by (input wrappers, axis, epsilon).
        self._modules: dict[tuple[tuple[TensorWrapper, ...], int, float], fx.GraphModule] = {}

    def build_node(
        self,
        graph: fx.Graph,
        wrappers: Sequence[TensorWrapper],
        nodes: Sequence[fx.Node],
        axis: int,
        epsilon: float,
    ) -> fx.Node:
        """
        Append the layer normalization subgraph to ``graph``.

        Args:
            graph: The graph under construction.
            wrappers: Handles for ``[x, scale(, bias)]``; only the input shape is read.
            nodes: Upstream nodes producing ``[x, scale(, bias)]``.
            axis: Operator axis (resolved here against the input rank if negative).
            epsilon: Variance epsilon.

        Returns:
            The node producing the normalized output.
        """
        if len(nodes) not in (2, 3):
            raise ConfigurationError(
                f"LayerNorm/graph_compiler: requires two or three input nodes, got {len(nodes)}"
            )
        rank = len(wrappers[0].shape)
        axis = resolve_axis(axis, rank)

        mvn = graph.call_function(
            mean_variance_normalize,
            args=(nodes[0],),
            kwargs={
                "axes": tuple(range(axis, rank)),
                "normalize_variance": True,
                "eps": epsilon,
                "eps_inside_sqrt": True,
            },
        )

        scale = nodes[1]
        bias = nodes[2] if len(nodes) == 3 else None
        if axis == rank - 1:
            shared_shape = [1] * (rank - 1) + [-1]
            scale = graph.call_function(torch.reshape, args=(scale, shared_shape))
            if bias is not None:
                bias = graph.call_function(torch.reshape, args=(bias, shared_shape))

        result = graph.call_function(operator.mul, args=(mvn, scale))
        if bias is not None:
            result = graph.call_function(operator.add, args=(result, bias))
        return result

    def compile(self, wrappers: Sequence[TensorWrapper], axis: int, epsilon: float) -> fx.GraphModule:
        """Build a standalone graph with one placeholder per input and wrap it in a GraphModule."""
        graph = fx.Graph()
        placeholders = [graph.placeholder(w.name) for w in wrappers]
        result = self.build_node(graph, wrappers, placeholders, axis, epsilon)
        graph.output(result)
        graph.lint()
        return fx.GraphModule(torch.nn.Module(), graph)

    def compiled(self, wrappers: Sequence[TensorWrapper], axis: int, epsilon: float) -> fx.GraphModule:
        """Return the module for these inputs, compiling it on first use."""
        key = (tuple(wrappers), axis, epsilon)
        module = self._modules.get(key)
        if module is None:
            module = self.compile(wrappers, axis, epsilon)
            self._modules[key] = module
            logger.debug(
                "graph_compiled",
                extra={"nodes": len(module.graph.nodes), "axis": axis, "cached": len(self._modules)},
            )
        return module

    def execute(
        self,
        inputs: Sequence[torch.Tensor],
        output: torch.Tensor,
        axis: int,
        epsilon: float,
    ) -> None:
        names = ("x", "scale", "bias")
        wrappers = [TensorWrapper.from_tensor(names[i], t) for i, t in enumerate(inputs)]
        module = self.compiled(wrappers, axis, epsilon)
        with torch.no_grad():
            output.copy_(module(*inputs))


register_backend(BackendId.GRAPH_COMPILER, GraphCompilerBackend)
