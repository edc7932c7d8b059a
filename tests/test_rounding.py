"""Tests for half-step rounding helpers."""
import pytest

from exchange_planner.nutrition.rounding import (
    clamp,
    from_half_units,
    parse_equivalent_quantity,
    round_half,
    round_half_signed,
    round_half_up,
    to_half_units,
)


class TestRoundHalf:
    """Tests for rounding to half exchanges."""

    @pytest.mark.parametrize("value,expected", [
        (0.24, 0.0),
        (0.25, 0.5),
        (2.25, 2.5),
        (2.74, 2.5),
        (2.75, 3.0),
        (10.135, 10.0),
    ])
    def test_round_half_ties_up(self, value, expected):
        assert round_half(value) == expected

    def test_round_half_clamps_negative(self):
        assert round_half(-3.2) == 0.0
        assert round_half_signed(-3.2) == -3.0
        assert round_half_signed(-0.25) == 0.0

    def test_round_half_up_digits(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -2
        assert round_half_up(137.58, 1) == pytest.approx(137.6)

    def test_half_units_conversion(self):
        assert to_half_units(3.5) == 7
        assert to_half_units(0.0) == 0
        assert from_half_units(7) == 3.5

    def test_clamp(self):
        assert clamp(5, 0, 3) == 3
        assert clamp(-1, 0, 3) == 0
        assert clamp(2, 0, 3) == 2


class TestParseEquivalentQuantity:
    """Tests for user-entered exchange quantities."""

    @pytest.mark.parametrize("raw,expected", [
        ("3.26", 3.5),
        ("2,24", 2.0),
        ("1,5", 1.5),
        (" 4 ", 4.0),
        ("2.5 equivalentes", 2.5),
        (1.74, 1.5),
        (3, 3.0),
    ])
    def test_valid_quantities(self, raw, expected):
        assert parse_equivalent_quantity(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", None, float("nan"), float("inf"), True])
    def test_invalid_quantities_are_zero(self, raw):
        assert parse_equivalent_quantity(raw) == 0.0

    def test_negative_quantity_clamps_to_zero(self):
        assert parse_equivalent_quantity("-2") == 0.0
