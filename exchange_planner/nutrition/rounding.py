"""Rounding helpers shared by every exchange calculation.

Exchanges are counted in half steps. Ties round upward (2.25 -> 2.5,
-0.25 -> 0.0) rather than to even, so identical inputs give the same
half-step values regardless of how the float was produced.
"""

import math
import re
from typing import Union

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def round_half_up(value: float, digits: int = 0) -> float:
    """Round to ``digits`` decimals with ties toward +infinity."""
    power = 10 ** digits
    return math.floor(value * power + 0.5) / power


def round_half_signed(value: float) -> float:
    """Round to the nearest 0.5, keeping the sign (for deltas)."""
    return math.floor(value * 2 + 0.5) / 2


def round_half(value: float) -> float:
    """Round to the nearest 0.5 and clamp to >= 0."""
    return max(0.0, round_half_signed(value))


def clamp(value: float, min_value: float, max_value: float) -> float:
    return min(max_value, max(min_value, value))


def to_half_units(exchanges: float) -> int:
    """Exchanges -> integer count of 0.5 units."""
    return int(round_half_signed(exchanges) * 2)


def from_half_units(units: int) -> float:
    return units / 2


def parse_equivalent_quantity(value: Union[str, float, int, None]) -> float:
    """Parse a user-entered exchange quantity to the nearest half step.

    Accepts numbers or strings using either ``.`` or ``,`` as the decimal
    separator. Anything unparseable yields 0.

    Examples:
        >>> parse_equivalent_quantity("3.26")
        3.5
        >>> parse_equivalent_quantity("2,24")
        2.0
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return 0.0
        return round_half(float(value))

    match = _LEADING_NUMBER.match(str(value).replace(",", ".", 1).strip())
    if match is None:
        return 0.0
    parsed = float(match.group(0))
    if not math.isfinite(parsed):
        return 0.0
    return round_half(parsed)
