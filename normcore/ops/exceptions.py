# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Operator error taxonomy.

  ConfigurationError    : wrong input count, axis out of range, or no backend
                           supports the (axis, precision, target) combination.
  ShapeMismatchError    : a rank or dimension check of shape inference failed.
  BackendExecutionError : a backend failed during forward execution.

Configuration and shape errors are raised at shape-inference, finalize or
capability-query time, never deferred to the forward call.
"""

from typing import Optional, Sequence


class NormError(Exception):
    """Base for all operator errors."""


class ConfigurationError(NormError):
    """Raised when the operator is configured or wired in an unsupported way."""


class ShapeMismatchError(NormError):
    """
    Raised when input, weight and bias shapes are incompatible.

    Attributes:
        expected: The value the input shape demands (a rank or a dimension size).
        actual: The value found on the weight or bias.
        index: Offending dimension index, or None for rank mismatches.
    """

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.index = index


class BackendExecutionError(NormError):
    """
    Raised when the selected backend fails during a forward call.

    The error is attributable: it carries the backend id and the shapes of the
    input tensors involved. No alternate backend is attempted.
    """

    def __init__(self, backend: str, input_shapes: Sequence[Sequence[int]], cause: str) -> None:
        shapes = [list(s) for s in input_shapes]
        super().__init__(f"LayerNorm: backend '{backend}' failed on inputs {shapes}: {cause}")
        self.backend = backend
        self.input_shapes = shapes
