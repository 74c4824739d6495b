"""Decimal helpers for currency amounts"""

from decimal import Decimal, ROUND_HALF_EVEN
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Amounts are stored in cents, so anything under half a cent is rounding noise
EPSILON = Decimal("0.005")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Quantize to cents using banker's rounding"""
    if isinstance(value, float):
        # Go through str so 0.1 stays 0.1 instead of its binary expansion
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def money_close(a: Decimal, b: Decimal, tolerance: Decimal = EPSILON) -> bool:
    return abs(a - b) <= tolerance
