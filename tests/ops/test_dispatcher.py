# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for backend selection and execution.

Selection must be deterministic for a fixed target, axis and feature set;
unsupported precisions fall back to the reference path; backend failures
surface as BackendExecutionError.
"""

from typing import Callable, Sequence

import pytest
import torch

from normcore.config.schema import BackendConfig, FeatureConfig
from normcore.ops.dispatcher import BackendDispatcher
from normcore.ops.exceptions import BackendExecutionError, ConfigurationError
from normcore.ops.interfaces import BackendBase, BackendId
from normcore.ops.reference import layer_norm_reference

BackendConfigFactory = Callable[..., BackendConfig]


class TestCapabilityQuery:
    def test_reference_always_supported(self) -> None:
        dispatcher = BackendDispatcher(BackendConfig(features=FeatureConfig(parallel=False)))
        assert dispatcher.supports(BackendId.REFERENCE, -1)

    def test_disabled_backend_reports_unsupported(self) -> None:
        dispatcher = BackendDispatcher(BackendConfig(features=FeatureConfig(gpu=False)))
        assert not dispatcher.supports(BackendId.GPU, 1, 3)

    def test_unknown_backend_reports_unsupported(self) -> None:
        assert not BackendDispatcher().supports("vulkan", 1, 3)

    def test_accelerator_axis_restriction(self, backend_config: BackendConfigFactory) -> None:
        dispatcher = BackendDispatcher(backend_config())
        assert not dispatcher.supports("accelerator", 3, 4)
        assert not dispatcher.supports("accelerator", -1)
        assert dispatcher.supports("accelerator", 1, 4)


class TestSelection:
    @pytest.mark.parametrize(
        ("target", "expected"),
        [
            ("cpu", BackendId.REFERENCE),
            ("parallel", BackendId.PARALLEL),
            ("parallel_fp16", BackendId.PARALLEL),
            ("gpu", BackendId.GPU),
            ("gpu_fp16", BackendId.GPU),
            ("accelerator", BackendId.ACCELERATOR),
        ],
    )
    def test_target_default(self, backend_config: BackendConfigFactory, target: str, expected: BackendId) -> None:
        dispatcher = BackendDispatcher(backend_config(target=target))
        assert dispatcher.select(1, 3).backend_id is expected

    def test_preferred_backend(self, backend_config: BackendConfigFactory) -> None:
        dispatcher = BackendDispatcher(backend_config(preferred_backend="graph_compiler"))
        assert dispatcher.candidates() == (BackendId.GRAPH_COMPILER,)
        assert dispatcher.select(2, 3).backend_id is BackendId.GRAPH_COMPILER

    def test_preferred_backend_inconsistent_with_target(self, backend_config: BackendConfigFactory) -> None:
        dispatcher = BackendDispatcher(backend_config(target="gpu", preferred_backend="parallel"))
        with pytest.raises(ConfigurationError):
            dispatcher.select(1, 3)

    def test_parallel_disabled_falls_through_to_reference(self) -> None:
        config = BackendConfig(target="parallel", features=FeatureConfig(parallel=False))
        assert BackendDispatcher(config).select(1, 3).backend_id is BackendId.REFERENCE

    def test_no_backend_supports_last_axis_on_accelerator(self, backend_config: BackendConfigFactory) -> None:
        dispatcher = BackendDispatcher(backend_config(target="accelerator"))
        with pytest.raises(ConfigurationError, match="accelerator"):
            dispatcher.select(2, 3)

    def test_gpu_unavailable_is_configuration_error(self) -> None:
        dispatcher = BackendDispatcher(BackendConfig(target="gpu", features=FeatureConfig(gpu=False)))
        with pytest.raises(ConfigurationError):
            dispatcher.select(1, 3)

    def test_selection_is_deterministic(self, backend_config: BackendConfigFactory) -> None:
        picks = {BackendDispatcher(backend_config(target="parallel")).select(1, 3).backend_id for _ in range(5)}
        assert picks == {BackendId.PARALLEL}


class _FailingBackend(BackendBase):
    backend_id = BackendId.GPU

    def execute(
        self,
        inputs: Sequence[torch.Tensor],
        output: torch.Tensor,
        axis: int,
        epsilon: float,
    ) -> None:
        raise RuntimeError("kernel launch failed")


class TestForward:
    def test_half_precision_falls_back_to_reference(
        self, backend_config: BackendConfigFactory, sample_inputs: list[torch.Tensor]
    ) -> None:
        dispatcher = BackendDispatcher(backend_config(target="parallel_fp16"))
        backend = dispatcher.select(1, 3)
        half_inputs = [t.half() for t in sample_inputs]
        output = torch.empty_like(half_inputs[0])

        dispatcher.forward(backend, half_inputs, output, 1, 1e-5)

        expected = layer_norm_reference(*half_inputs, axis=1, epsilon=1e-5)
        assert backend.backend_id is BackendId.PARALLEL
        assert torch.equal(output, expected)

    def test_runs_selected_backend(
        self, backend_config: BackendConfigFactory, sample_inputs: list[torch.Tensor]
    ) -> None:
        dispatcher = BackendDispatcher(backend_config(target="parallel"))
        output = torch.empty_like(sample_inputs[0])
        dispatcher.forward(dispatcher.select(1, 3), sample_inputs, output, 1, 1e-5)
        expected = layer_norm_reference(*sample_inputs, axis=1, epsilon=1e-5)
        assert torch.allclose(output, expected, atol=1e-5)

    def test_backend_failure_is_attributed(self, sample_inputs: list[torch.Tensor]) -> None:
        dispatcher = BackendDispatcher()
        output = torch.empty_like(sample_inputs[0])
        with pytest.raises(BackendExecutionError) as exc_info:
            dispatcher.forward(_FailingBackend(), sample_inputs, output, 1, 1e-5)
        assert exc_info.value.backend == "gpu"
        assert exc_info.value.input_shapes == [[2, 3, 4], [3, 4], [3, 4]]
        assert "kernel launch failed" in str(exc_info.value)

    def test_non_runtime_failure_is_attributed(self, sample_inputs: list[torch.Tensor]) -> None:
        class _NoCudaBackend(_FailingBackend):
            def execute(
                self,
                inputs: Sequence[torch.Tensor],
                output: torch.Tensor,
                axis: int,
                epsilon: float,
            ) -> None:
                raise AssertionError("Torch not compiled with CUDA enabled")

        dispatcher = BackendDispatcher()
        output = torch.empty_like(sample_inputs[0])
        with pytest.raises(BackendExecutionError) as exc_info:
            dispatcher.forward(_NoCudaBackend(), sample_inputs, output, 1, 1e-5)
        assert exc_info.value.backend == "gpu"
        assert isinstance(exc_info.value.__cause__, AssertionError)

    def test_operator_errors_pass_through(
        self, backend_config: BackendConfigFactory, sample_inputs: list[torch.Tensor]
    ) -> None:
        dispatcher = BackendDispatcher(backend_config(target="accelerator"))
        accelerator = dispatcher.backend(BackendId.ACCELERATOR)
        output = torch.empty_like(sample_inputs[0])
        with pytest.raises(ConfigurationError):
            dispatcher.forward(accelerator, sample_inputs, output, 2, 1e-5)
