# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for normcore.

Every operation is a subcommand of ``normcore``. The global options
(--config, --log-level, --seed) are inherited by every subcommand through
argparse's parent parser mechanism.

Usage:
    normcore info
    normcore check --shapes "2,3,4;4;4" --axis -1
    normcore run --shape 2,3,4 --target parallel
"""

import argparse
import sys

from normcore.cli.commands import handle_check, handle_info, handle_run
from normcore.cli.exit_codes import USER_ERROR

_TARGETS = ["cpu", "parallel", "parallel_fp16", "gpu", "gpu_fp16", "accelerator"]
_BACKENDS = ["reference", "graph_compiler", "accelerator", "gpu", "parallel"]


def _build_global_parser() -> argparse.ArgumentParser:
    """Build the parent parser with global options."""
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    parent.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the random seed (takes precedence over config).",
    )
    parent.add_argument(
        "--axis",
        type=int,
        default=None,
        help="Normalization axis (takes precedence over config).",
    )
    parent.add_argument(
        "--target",
        type=str,
        default=None,
        choices=_TARGETS,
        help="Execution target preference.",
    )
    parent.add_argument(
        "--backend",
        type=str,
        default=None,
        choices=_BACKENDS,
        help="Restrict dispatch to one backend.",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register all subcommands with their handler functions."""
    commands = [
        ("info", "Display environment and backend availability.", handle_info),
        ("check", "Run shape inference on input/weight/bias shapes.", handle_check),
        ("run", "Run one forward pass and compare with the reference path.", handle_run),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)

    subparsers.choices["check"].add_argument(
        "--shapes",
        type=str,
        required=True,
        help='Semicolon-separated shapes of x, weight and optional bias, e.g. "2,3,4;4;4".',
    )

    run_parser = subparsers.choices["run"]
    run_parser.add_argument("--shape", type=str, required=True, help="Input shape, e.g. 2,3,4.")
    run_parser.add_argument("--epsilon", type=float, default=None, help="Variance epsilon.")
    run_parser.add_argument(
        "--dtype",
        type=str,
        default="float32",
        choices=["float32", "float16", "float64"],
        help="Input dtype.",
    )
    run_parser.add_argument(
        "--no-bias",
        action="store_true",
        default=False,
        dest="no_bias",
        help="Run without a bias input.",
    )


def main() -> None:
    """
    Main CLI entrypoint, referenced by pyproject.toml's [project.scripts].

    If no subcommand is given, show help and exit with USER_ERROR.
    """
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="normcore",
        description="normcore: layer normalization operator with pluggable backends.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)

    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
