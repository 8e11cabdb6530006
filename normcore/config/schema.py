# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for normcore.

Every config section gets its own frozen pydantic model. Frozen means once you
create it, you cannot mutate it: the operator configuration is set once at
construction and never changes afterwards.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TargetName = Literal["cpu", "parallel", "parallel_fp16", "gpu", "gpu_fp16", "accelerator"]
BackendName = Literal["reference", "graph_compiler", "accelerator", "gpu", "parallel"]


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings: reproducibility (seed), observability (log_level)
    and project identity.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="normcore", description="Human-readable project identifier"
    )
    seed: int = Field(
        default=42,
        ge=0,
        description="Random seed used for generated inputs and torch",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class LayerNormConfig(BaseModel):
    """
    The operator configuration record.

    ``axis`` may be negative; it is resolved against the input rank once,
    during finalize. ``epsilon`` is added to the variance inside the square root.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    axis: int = Field(
        default=-1,
        description="First dimension of the normalization group (negative counts from the end)",
    )
    epsilon: float = Field(
        default=1e-5,
        gt=0.0,
        description="Added to the variance before the square root",
    )


class FeatureConfig(BaseModel):
    """
    Per-backend availability overrides.

    ``None`` means "probe the environment"; ``True``/``False`` force the
    backend in or out. The reference backend cannot be disabled.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    graph_compiler: Optional[bool] = Field(default=None)
    accelerator: Optional[bool] = Field(default=None)
    gpu: Optional[bool] = Field(default=None)
    parallel: Optional[bool] = Field(default=None)


class BackendConfig(BaseModel):
    """Execution-target preference and backend availability."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    target: TargetName = Field(
        default="cpu",
        description="Preferred execution target; decides which backends are candidates",
    )
    preferred_backend: Optional[BackendName] = Field(
        default=None,
        description="Restrict dispatch to one backend. Must be consistent with target.",
    )
    gpu_device: str = Field(
        default="cuda",
        description="torch device string the gpu backend runs its kernel on",
    )
    features: FeatureConfig = Field(default_factory=FeatureConfig)


class NormcoreConfig(BaseModel):
    """
    Top-level config container.

    A YAML file may contain just ``global:``; sections not present stay None
    and consumers fall back to their defaults.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    layer_norm: Optional[LayerNormConfig] = Field(default=None)
    backend: Optional[BackendConfig] = Field(default=None)
