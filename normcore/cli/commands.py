# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the normcore CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. No print() calls; everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Optional

import torch
from pydantic import ValidationError

from normcore.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, USER_ERROR, VALIDATION_ERROR
from normcore.config.exceptions import ConfigError
from normcore.config.loader import load_config
from normcore.config.schema import BackendConfig, GlobalConfig, LayerNormConfig, NormcoreConfig
from normcore.logging.logger import get_logger
from normcore.ops.exceptions import BackendExecutionError, ConfigurationError, ShapeMismatchError
from normcore.ops.interfaces import BackendId
from normcore.ops.layer_norm import LayerNormOperator
from normcore.ops.reference import layer_norm_reference
from normcore.runtime.bootstrap import bootstrap, set_deterministic_seed
from normcore.runtime.environment import get_system_info

_DTYPES = {"float32": torch.float32, "float16": torch.float16, "float64": torch.float64}


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, NormcoreConfig | None, logging.Logger]:
    """
    The shared setup every command needs: load config, run bootstrap.

    Returns a tuple of (exit_code, config, logger). If exit_code is not SUCCESS,
    the caller should return it immediately.
    """
    logger = get_logger(f"normcore.cli.{command_name}", log_level=args.log_level)

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    if config is not None:
        bootstrap(config.global_config)
    else:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )
        if args.seed is None:
            set_deterministic_seed(GlobalConfig.model_fields["seed"].default)

    if args.seed is not None:
        set_deterministic_seed(args.seed)

    return SUCCESS, config, logger


def _parse_shape(text: str) -> tuple[int, ...]:
    """Parse ``"2,3,4"`` into ``(2, 3, 4)``; every dimension must be positive."""
    dims = tuple(int(part) for part in text.split(",") if part.strip())
    if not dims or any(d <= 0 for d in dims):
        raise ValueError(f"Invalid shape '{text}': expected comma-separated positive integers")
    return dims


def _layer_norm_params(args: argparse.Namespace, config: Optional[NormcoreConfig]) -> LayerNormConfig:
    base = config.layer_norm if config is not None and config.layer_norm is not None else LayerNormConfig()
    update: dict[str, Any] = {}
    if args.axis is not None:
        update["axis"] = args.axis
    if getattr(args, "epsilon", None) is not None:
        update["epsilon"] = args.epsilon
    return LayerNormConfig.model_validate({**base.model_dump(), **update})


def _backend_config(args: argparse.Namespace, config: Optional[NormcoreConfig]) -> BackendConfig:
    base = config.backend if config is not None and config.backend is not None else BackendConfig()
    update: dict[str, Any] = {}
    if getattr(args, "target", None) is not None:
        update["target"] = args.target
    if getattr(args, "backend", None) is not None:
        update["preferred_backend"] = args.backend
    return BackendConfig.model_validate({**base.model_dump(), **update})


def handle_info(args: argparse.Namespace) -> int:
    """Log environment details and which backends can run here."""
    exit_code, config, logger = _load_and_bootstrap(args, "info")
    if exit_code != SUCCESS:
        return exit_code

    try:
        operator = LayerNormOperator(
            _layer_norm_params(args, config),
            backend_config=_backend_config(args, config),
        )
    except (ValidationError, ConfigurationError) as err:
        logger.error("Configuration error", extra={"command": "info", "error": str(err)})
        return CONFIG_ERROR

    system_info = get_system_info()
    logger.info(
        "Environment",
        extra={
            "python_version": system_info.python_version,
            "torch_version": system_info.torch_version,
            "cuda_available": system_info.cuda_available,
            "num_threads": system_info.num_threads,
        },
    )
    dispatcher = operator.dispatcher
    logger.info(
        "Backends",
        extra={
            "target": dispatcher.target.value,
            "candidates": [b.value for b in dispatcher.candidates()],
            "available": {b.value: dispatcher.is_available(b) for b in BackendId},
            "supports_axis": {b.value: operator.support_backend(b) for b in BackendId},
        },
    )
    return SUCCESS


def handle_check(args: argparse.Namespace) -> int:
    """Run shape inference on ``--shapes`` and log the output shape."""
    exit_code, config, logger = _load_and_bootstrap(args, "check")
    if exit_code != SUCCESS:
        return exit_code

    try:
        shapes = [_parse_shape(part) for part in args.shapes.split(";")]
    except ValueError as err:
        logger.error("Invalid shapes", extra={"command": "check", "error": str(err)})
        return USER_ERROR

    try:
        operator = LayerNormOperator(
            _layer_norm_params(args, config),
            backend_config=_backend_config(args, config),
        )
        result = operator.get_memory_shapes(shapes)
    except ShapeMismatchError as err:
        logger.error(
            "Shape mismatch",
            extra={
                "command": "check",
                "error": str(err),
                "expected": err.expected,
                "actual": err.actual,
                "index": err.index,
            },
        )
        return VALIDATION_ERROR
    except (ValidationError, ConfigurationError) as err:
        logger.error("Configuration error", extra={"command": "check", "error": str(err)})
        return CONFIG_ERROR

    logger.info(
        "Shapes valid",
        extra={"command": "check", "outputs": [list(s) for s in result.outputs]},
    )
    return SUCCESS


def handle_run(args: argparse.Namespace) -> int:
    """Run one forward pass on seeded random data and compare it with the reference path."""
    exit_code, config, logger = _load_and_bootstrap(args, "run")
    if exit_code != SUCCESS:
        return exit_code

    try:
        shape = _parse_shape(args.shape)
    except ValueError as err:
        logger.error("Invalid shape", extra={"command": "run", "error": str(err)})
        return USER_ERROR

    try:
        operator = LayerNormOperator(
            _layer_norm_params(args, config),
            backend_config=_backend_config(args, config),
        )
        axis = operator.axis + len(shape) if operator.axis < 0 else operator.axis
        param_shape = shape[axis:] if 0 <= axis < len(shape) else shape
        dtype = _DTYPES[args.dtype]

        x = torch.randn(shape, dtype=torch.float32).to(dtype)
        weight = torch.randn(param_shape, dtype=torch.float32).to(dtype)
        inputs = [x, weight]
        if not args.no_bias:
            inputs.append(torch.randn(param_shape, dtype=torch.float32).to(dtype))

        operator.get_memory_shapes([tuple(t.shape) for t in inputs])
        operator.finalize(inputs)
        output = torch.empty_like(x)
        operator.forward(inputs, [output])
    except ShapeMismatchError as err:
        logger.error("Shape mismatch", extra={"command": "run", "error": str(err)})
        return VALIDATION_ERROR
    except (ValidationError, ConfigurationError) as err:
        logger.error("Configuration error", extra={"command": "run", "error": str(err)})
        return CONFIG_ERROR
    except BackendExecutionError as err:
        logger.error(
            "Runtime error",
            extra={"command": "run", "backend": err.backend, "error": str(err)},
        )
        return RUNTIME_ERROR

    bias = inputs[2] if len(inputs) == 3 else None
    expected = layer_norm_reference(x, weight, bias, operator.axis, operator.epsilon)
    max_abs_error = (output.double() - expected.double()).abs().max().item()
    logger.info(
        "Forward complete",
        extra={
            "command": "run",
            "backend": operator.backend.backend_id.value if operator.backend else None,
            "shape": list(shape),
            "axis": operator.axis,
            "dtype": args.dtype,
            "max_abs_error": max_abs_error,
        },
    )
    return SUCCESS
