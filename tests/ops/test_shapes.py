# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for shape inference: rank/dimension checks and the legacy [n, 1] weight form."""

import pytest

from normcore.ops.exceptions import ConfigurationError, ShapeMismatchError
from normcore.ops.shapes import split_sizes, validate_shapes


class TestValidShapes:
    @pytest.mark.parametrize("axis", [2, -1])
    @pytest.mark.parametrize("weight", [(4,), (4, 1)])
    def test_last_axis_weight_forms(self, axis: int, weight: tuple[int, ...]) -> None:
        assert validate_shapes([(2, 3, 4), weight], axis) == [(2, 3, 4)]

    def test_legacy_and_plain_weight_agree(self) -> None:
        plain = validate_shapes([(2, 3, 4), (4,), (4,)], -1)
        legacy = validate_shapes([(2, 3, 4), (4, 1), (4, 1)], -1)
        assert plain == legacy

    def test_mixed_legacy_bias_accepted(self) -> None:
        assert validate_shapes([(2, 3, 4), (4,), (4, 1)], -1) == [(2, 3, 4)]

    def test_interior_axis(self) -> None:
        assert validate_shapes([(2, 3, 4), (3, 4), (3, 4)], 1) == [(2, 3, 4)]

    def test_output_never_shrinks(self) -> None:
        outputs = validate_shapes([(5, 1, 7), (1, 7)], -2)
        assert outputs == [(5, 1, 7)]


class TestInvalidShapes:
    def test_dimension_mismatch_reports_sizes(self) -> None:
        with pytest.raises(ShapeMismatchError) as exc_info:
            validate_shapes([(2, 3, 4), (5,)], 2)
        assert exc_info.value.expected == 4
        assert exc_info.value.actual == 5
        assert exc_info.value.index == 0
        assert "4" in str(exc_info.value) and "5" in str(exc_info.value)

    def test_rank_mismatch(self) -> None:
        with pytest.raises(ShapeMismatchError) as exc_info:
            validate_shapes([(2, 3, 4), (4,)], 1)
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 1
        assert exc_info.value.index is None

    def test_two_dim_weight_not_legacy_for_interior_axis(self) -> None:
        with pytest.raises(ShapeMismatchError):
            validate_shapes([(2, 3, 4), (4, 1)], 1)

    def test_legacy_weight_needs_trailing_one(self) -> None:
        with pytest.raises(ShapeMismatchError):
            validate_shapes([(2, 3, 4), (4, 3)], -1)

    def test_bias_dimension_mismatch_reports_index(self) -> None:
        with pytest.raises(ShapeMismatchError) as exc_info:
            validate_shapes([(2, 3, 4), (3, 4), (3, 5)], 1)
        assert exc_info.value.index == 1
        assert exc_info.value.expected == 4
        assert exc_info.value.actual == 5

    def test_bias_rank_mismatch(self) -> None:
        with pytest.raises(ShapeMismatchError):
            validate_shapes([(2, 3, 4), (3, 4), (12,)], 1)

    @pytest.mark.parametrize("shapes", [[(2, 3, 4)], [(2, 3, 4), (4,), (4,), (4,)]])
    def test_wrong_input_count(self, shapes: list[tuple[int, ...]]) -> None:
        with pytest.raises(ConfigurationError):
            validate_shapes(shapes, -1)

    def test_axis_out_of_range(self) -> None:
        with pytest.raises(ConfigurationError):
            validate_shapes([(2, 3, 4), (4,)], 3)


class TestSplitSizes:
    def test_splits_at_axis(self) -> None:
        assert split_sizes((2, 3, 4), 1) == (2, 12)
        assert split_sizes((2, 3, 4), 0) == (1, 24)
        assert split_sizes((2, 3, 4), 2) == (6, 4)
