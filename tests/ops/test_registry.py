# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the backend registry and feature flags."""

import pytest

from normcore.config.schema import FeatureConfig
from normcore.ops.backends import ReferenceBackend
from normcore.ops.features import probe_features, resolve_features
from normcore.ops.interfaces import BackendBase, BackendId
from normcore.ops.registry import get_backend, list_backends, register_backend


class TestRegistry:
    def test_every_backend_registered(self) -> None:
        assert list_backends() == sorted(b.value for b in BackendId)

    @pytest.mark.parametrize("backend_id", list(BackendId))
    def test_get_backend_returns_class(self, backend_id: BackendId) -> None:
        cls = get_backend(backend_id)
        assert issubclass(cls, BackendBase)
        assert cls.backend_id is backend_id

    def test_lookup_by_string(self) -> None:
        assert get_backend("reference") is ReferenceBackend

    def test_unknown_backend_raises(self) -> None:
        with pytest.raises(KeyError, match="Available"):
            get_backend("vulkan")

    def test_duplicate_registration_raises(self) -> None:
        with pytest.raises(ValueError):
            register_backend(BackendId.REFERENCE, ReferenceBackend)


class TestFeatures:
    def test_reference_and_parallel_always_probed(self) -> None:
        features = probe_features()
        assert features[BackendId.REFERENCE] is True
        assert features[BackendId.PARALLEL] is True
        assert features[BackendId.GRAPH_COMPILER] is True

    def test_overrides_apply(self) -> None:
        features = resolve_features(FeatureConfig(accelerator=True, parallel=False))
        assert features[BackendId.ACCELERATOR] is True
        assert features[BackendId.PARALLEL] is False

    def test_none_keeps_probe(self) -> None:
        assert resolve_features(FeatureConfig()) == probe_features()
