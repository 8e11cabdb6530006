# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Layer normalization operator: shape inference, reference kernel and backends."""

from normcore.ops.axis import resolve_axis
from normcore.ops.exceptions import (
    BackendExecutionError,
    ConfigurationError,
    NormError,
    ShapeMismatchError,
)
from normcore.ops.layer_norm import LayerNormOperator, ShapeInference, create_layer_norm
from normcore.ops.reference import layer_norm_reference, run_reference
from normcore.ops.shapes import validate_shapes

__all__ = [
    "BackendExecutionError",
    "ConfigurationError",
    "LayerNormOperator",
    "NormError",
    "ShapeInference",
    "ShapeMismatchError",
    "create_layer_norm",
    "layer_norm_reference",
    "resolve_axis",
    "run_reference",
    "validate_shapes",
]
