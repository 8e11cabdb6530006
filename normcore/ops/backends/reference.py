# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Reference backend: runs the float64-accumulating reference path."""

from typing import Sequence

import torch

from normcore.ops.interfaces import BackendBase, BackendId
from normcore.ops.reference import run_reference
from normcore.ops.registry import register_backend


class ReferenceBackend(BackendBase):
    """Supports every axis and every floating dtype. Always available."""

    backend_id = BackendId.REFERENCE
    supported_dtypes = frozenset({torch.float16, torch.bfloat16, torch.float32, torch.float64})

    def execute(
        self,
        inputs: Sequence[torch.Tensor],
        output: torch.Tensor,
        axis: int,
        epsilon: float,
    ) -> None:
        run_reference(inputs, output, axis, epsilon)


register_backend(BackendId.REFERENCE, ReferenceBackend)
