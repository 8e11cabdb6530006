# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for normcore tests.

Fixtures here are available to every test file automatically.
"""

import textwrap
from pathlib import Path
from typing import Callable, Optional

import pytest
import torch

from normcore.config.schema import BackendConfig, FeatureConfig


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest config that passes schema validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "normcore-test"
          seed: 42
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A config file that's valid YAML but fails schema validation (missing required field)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "normcore-test"
          seed: 42
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file


@pytest.fixture()
def all_features() -> FeatureConfig:
    """Every backend forced on, so CPU-only machines can exercise them all."""
    return FeatureConfig(graph_compiler=True, accelerator=True, gpu=True, parallel=True)


@pytest.fixture()
def backend_config(all_features: FeatureConfig) -> Callable[..., BackendConfig]:
    """Factory for backend configs with every backend enabled and the gpu backend on the CPU device."""

    def _make(target: str = "cpu", preferred_backend: Optional[str] = None) -> BackendConfig:
        return BackendConfig(
            target=target,
            preferred_backend=preferred_backend,
            gpu_device="cpu",
            features=all_features,
        )

    return _make


@pytest.fixture()
def sample_inputs() -> list[torch.Tensor]:
    """Seeded ``[x, weight, bias]`` for a ``[2, 3, 4]`` input normalized over the last two axes."""
    generator = torch.Generator().manual_seed(0)
    x = torch.randn(2, 3, 4, generator=generator)
    weight = torch.randn(3, 4, generator=generator)
    bias = torch.randn(3, 4, generator=generator)
    return [x, weight, bias]
