"""
Money helpers.

All amounts in the engine are ``Decimal`` values quantized to cents so that
sums over many transactions never drift the way binary floats do.
"""

from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[int, float, str, Decimal]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Two totals closer than this are considered equal
TOLERANCE = Decimal("0.01")


def to_money(value: Number) -> Decimal:
    """
    Convert a number to a cent-precision Decimal.

    Floats go through ``str()`` first so ``0.1`` becomes exactly ``0.10``.

    Raises:
        ValueError: If the value is not numeric or has sub-cent precision.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    quantized = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if quantized != amount:
        raise ValueError(f"Amount has more than cent precision: {value!r}")
    return quantized


def money_sum(values: Iterable[Decimal]) -> Decimal:
    """Sum money values, starting from 0.00."""
    total = ZERO
    for value in values:
        total += value
    return total


def approx_equal(a: Decimal, b: Decimal) -> bool:
    """True if two amounts differ by less than the tolerance."""
    return abs(a - b) < TOLERANCE


def format_money(value: Decimal) -> str:
    """Format like '12.50'."""
    return f"{value:.2f}"
