# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Backend availability flags.

A backend is usable only when it is present in this environment: the graph
compiler needs ``torch.fx``, the gpu backend needs a CUDA device, and the
accelerator needs the ``torch_npu`` plugin installed. The parallel backend
runs on torch's CPU thread pool and is always present, as is the reference
backend. Each flag can be forced on or off through ``FeatureConfig``.

A disabled backend is simply reported as unsupported by the capability query.
"""

import importlib.util
from typing import Optional

import torch

from normcore.config.schema import FeatureConfig
from normcore.ops.interfaces import BackendId


def _has_module(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


def probe_features() -> dict[BackendId, bool]:
    """Detect which backends this environment can run."""
    return {
        BackendId.REFERENCE: True,
        BackendId.GRAPH_COMPILER: _has_module("torch.fx"),
        BackendId.ACCELERATOR: _has_module("torch_npu"),
        BackendId.GPU: torch.cuda.is_available(),
        BackendId.PARALLEL: True,
    }


def resolve_features(overrides: Optional[FeatureConfig] = None) -> dict[BackendId, bool]:
    """
    Combine probed availability with explicit overrides.

    Args:
        overrides: Per-backend flags; ``None`` entries keep the probed value.

    Returns:
        Availability for every ``BackendId``. The reference backend is always True.
    """
    features = probe_features()
    if overrides is None:
        return features

    for backend_id in BackendId:
        if backend_id is BackendId.REFERENCE:
            continue
        forced = getattr(overrides, backend_id.value)
        if forced is not None:
            features[backend_id] = forced
    return features
