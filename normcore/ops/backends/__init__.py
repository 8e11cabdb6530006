# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Layer normalization backends.

Importing this package registers all built-in backends with the registry.
"""

from normcore.ops.backends.accelerator import AcceleratorBackend, FusedLayerNormOp
from normcore.ops.backends.gpu import GpuBackend, GpuLayerNormNode
from normcore.ops.backends.graph import GraphCompilerBackend, mean_variance_normalize
from normcore.ops.backends.parallel import ParallelBackend
from normcore.ops.backends.reference import ReferenceBackend

__all__ = [
    "AcceleratorBackend",
    "FusedLayerNormOp",
    "GpuBackend",
    "GpuLayerNormNode",
    "GraphCompilerBackend",
    "ParallelBackend",
    "ReferenceBackend",
    "mean_variance_normalize",
]
