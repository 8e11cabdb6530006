# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for normcore.

The one-time setup that happens before a CLI command does real work:
  1. Validate the environment (Python version)
  2. Set deterministic seeds
  3. Initialize the logger
  4. Log startup info, including which backends this environment can run
"""

import os
import random
from pathlib import Path

import torch

from normcore.config.schema import GlobalConfig
from normcore.logging.logger import get_logger
from normcore.ops.features import probe_features
from normcore.runtime.environment import check_minimum_python, get_system_info


def set_deterministic_seed(seed: int) -> None:
    """
    Lock down all sources of randomness to the given seed.

    This sets Python's random module, PYTHONHASHSEED and the torch CPU and
    CUDA generators.
    """
    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)


def bootstrap(config: GlobalConfig) -> None:
    """
    Run the full bootstrap sequence.

    Args:
        config: The validated global configuration.
    """
    check_minimum_python()
    set_deterministic_seed(config.seed)

    log_file = None
    if config.log_file is not None:
        log_file = Path(config.log_file)

    logger = get_logger("normcore.runtime", log_level=config.log_level, log_file=log_file)

    system_info = get_system_info()
    features = probe_features()
    logger.info(
        "normcore bootstrap complete",
        extra={
            "seed": config.seed,
            "python_version": system_info.python_version,
            "torch_version": system_info.torch_version,
            "platform": system_info.platform,
            "backends": sorted(b.value for b, on in features.items() if on),
        },
    )
