# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Axis resolution under the negative-indexing convention."""

from normcore.ops.exceptions import ConfigurationError


def resolve_axis(axis: int, rank: int) -> int:
    """
    Resolve a possibly-negative axis against a known rank.

    ``-1`` means the last dimension, ``-rank`` the first.

    Raises:
        ConfigurationError: If ``rank`` is not positive or the axis falls
            outside ``[-rank, rank)``.
    """
    if rank <= 0:
        raise ConfigurationError(f"LayerNorm: input rank must be positive, got {rank}")
    if not -rank <= axis < rank:
        raise ConfigurationError(
            f"LayerNorm: axis {axis} is out of range for input of rank {rank} "
            f"(expected {-rank} <= axis < {rank})"
        )
    return axis + rank if axis < 0 else axis
