# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Backend selection and execution for the layer normalization operator.

Selection is deterministic: the execution target fixes an ordered candidate
list, an optional preferred backend narrows it to one entry, and the first
candidate that is available and supports the axis wins. There is no search
and no retry; if nothing qualifies a ConfigurationError is raised.

At execution time the selected backend runs unless it lacks support for the
input's dtype (e.g. half precision on the parallel backend); then the
reference path runs instead. That substitution is expected behavior and only
logged at debug level.
"""

import logging
from typing import Optional, Sequence

import torch

from normcore.config.schema import BackendConfig
from normcore.ops.exceptions import BackendExecutionError, ConfigurationError, NormError
from normcore.ops.features import resolve_features
from normcore.ops.interfaces import BackendBase, BackendId, Target
from normcore.ops.reference import run_reference
from normcore.ops.registry import get_backend

logger = logging.getLogger(__name__)

_TARGET_CANDIDATES: dict[Target, tuple[BackendId, ...]] = {
    Target.CPU: (BackendId.REFERENCE, BackendId.GRAPH_COMPILER),
    Target.PARALLEL: (BackendId.PARALLEL, BackendId.REFERENCE),
    Target.PARALLEL_FP16: (BackendId.PARALLEL, BackendId.REFERENCE),
    Target.GPU: (BackendId.GPU,),
    Target.GPU_FP16: (BackendId.GPU,),
    Target.ACCELERATOR: (BackendId.ACCELERATOR,),
}


class BackendDispatcher:
    """
    Chooses and drives the backend for one operator.

    Args:
        config: Target preference, preferred backend and feature overrides.
            Defaults to the CPU target with probed features.
    """

    def __init__(self, config: Optional[BackendConfig] = None) -> None:
        self.config = config if config is not None else BackendConfig()
        self.target = Target(self.config.target)
        self.features = resolve_features(self.config.features)
        self._backends: dict[BackendId, BackendBase] = {
            backend_id: get_backend(backend_id)(self.config) for backend_id in BackendId
        }

    def backend(self, backend_id: BackendId | str) -> BackendBase:
        return self._backends[BackendId(backend_id)]

    def is_available(self, backend_id: BackendId | str) -> bool:
        return self.features.get(BackendId(backend_id), False)

    def supports(self, backend_id: BackendId | str, axis: int, rank: Optional[int] = None) -> bool:
        """
        Capability query: available in this environment and able to run ``axis``.

        Unknown ids and disabled backends report False rather than raising.
        """
        try:
            key = BackendId(backend_id)
        except ValueError:
            return False
        if not self.is_available(key):
            return False
        return self._backends[key].supports(axis, rank)

    def candidates(self) -> tuple[BackendId, ...]:
        """
        Ordered backends to consider for the current target.

        Raises:
            ConfigurationError: If the preferred backend cannot serve the target.
        """
        allowed = _TARGET_CANDIDATES[self.target]
        preferred = self.config.preferred_backend
        if preferred is None:
            return allowed
        preferred_id = BackendId(preferred)
        if preferred_id not in allowed:
            raise ConfigurationError(
                f"LayerNorm: backend '{preferred_id.value}' cannot serve target "
                f"'{self.target.value}' (allowed: {[b.value for b in allowed]})"
            )
        return (preferred_id,)

    def select(self, axis: int, rank: Optional[int] = None) -> BackendBase:
        """
        Return the first candidate backend that supports ``axis``.

        Raises:
            ConfigurationError: If no candidate qualifies.
        """
        rejected = []
        for backend_id in self.candidates():
            if self.supports(backend_id, axis, rank):
                return self._backends[backend_id]
            rejected.append(backend_id.value)
        raise ConfigurationError(
            f"LayerNorm: no backend supports target '{self.target.value}' with axis {axis}"
            f"{'' if rank is None else f' (input rank {rank})'}; rejected: {rejected}"
        )

    def forward(
        self,
        backend: BackendBase,
        inputs: Sequence[torch.Tensor],
        output: torch.Tensor,
        axis: int,
        epsilon: float,
    ) -> None:
        """
        Run ``backend`` (or the reference path for unsupported dtypes).

        Raises:
            BackendExecutionError: The backend failed. No other backend is tried.
        """
        dtype = inputs[0].dtype
        if not backend.supports_dtype(dtype):
            logger.debug(
                "precision_fallback",
                extra={"backend": backend.backend_id.value, "dtype": str(dtype)},
            )
            backend_id = BackendId.REFERENCE
            run = run_reference
        else:
            backend_id = backend.backend_id
            run = backend.execute

        try:
            run(inputs, output, axis, epsilon)
        except NormError:
            raise
        except Exception as err:
            shapes = [tuple(t.shape) for t in inputs]
            logger.error(
                "backend_execution_failed",
                extra={"backend": backend_id.value, "input_shapes": shapes, "error": str(err)},
            )
            raise BackendExecutionError(backend_id.value, shapes, str(err)) from err
