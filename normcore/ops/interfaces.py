# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Backend contract for the layer normalization operator.

The set of backends is closed: every variant is a ``BackendId`` and every
implementation subclasses ``BackendBase``. The dispatcher works with any of
them through the same two calls:

- ``supports(axis, rank)``: capability query, answerable without tensor data
- ``execute(inputs, output, axis, epsilon)``: synchronous forward pass that
  writes ``output`` exactly once

Backends with a native graph representation also provide a ``build_node``
call. Its handles (``TensorWrapper``) and upstream nodes are opaque values
passed through unchanged apart from parameter translation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Sequence

import torch

from normcore.config.schema import BackendConfig


class BackendId(str, Enum):
    REFERENCE = "reference"
    GRAPH_COMPILER = "graph_compiler"
    ACCELERATOR = "accelerator"
    GPU = "gpu"
    PARALLEL = "parallel"


class Target(str, Enum):
    """Execution-target preference set by the surrounding engine."""

    CPU = "cpu"
    PARALLEL = "parallel"
    PARALLEL_FP16 = "parallel_fp16"
    GPU = "gpu"
    GPU_FP16 = "gpu_fp16"
    ACCELERATOR = "accelerator"


@dataclass(frozen=True)
class TensorWrapper:
    """
    A tensor handle as a backend sees it: a name and a descriptor.

    The core never reads data through a wrapper; it only uses the shape to
    translate parameters.
    """

    name: str
    shape: tuple[int, ...]
    dtype: torch.dtype = torch.float32
    device: str = "cpu"

    @classmethod
    def from_tensor(cls, name: str, tensor: torch.Tensor) -> "TensorWrapper":
        return cls(
            name=name,
            shape=tuple(tensor.shape),
            dtype=tensor.dtype,
            device=str(tensor.device),
        )


class BackendBase(ABC):
    """
    Base class for all layer normalization backends.

    Contract:
        execute(inputs, output, axis, epsilon) writes output with
        output.shape == inputs[0].shape

    ``axis`` passed to ``execute`` is always the resolved, non-negative axis.
    Inputs are read-only.
    """

    backend_id: ClassVar[BackendId]
    supported_dtypes: ClassVar[frozenset[torch.dtype]] = frozenset({torch.float32})

    def __init__(self, config: Optional[BackendConfig] = None) -> None:
        self.config = config if config is not None else BackendConfig()

    def supports(self, axis: int, rank: Optional[int] = None) -> bool:
        """Whether this backend can run the operator for ``axis``. No tensor data needed."""
        return True

    def supports_dtype(self, dtype: torch.dtype) -> bool:
        return dtype in self.supported_dtypes

    @abstractmethod
    def execute(
        self,
        inputs: Sequence[torch.Tensor],
        output: torch.Tensor,
        axis: int,
        epsilon: float,
    ) -> None:
        """
        Run layer normalization on ``[x, weight(, bias)]`` into ``output``.

        Blocks until the result is in ``output`` or an error is raised.
        """
        ...
