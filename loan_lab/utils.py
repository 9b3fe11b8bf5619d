"""Utility functions for the loans and payoff lab.

This module provides helpers for turning user input into ``Decimal`` values,
for converting fractional years into whole months and for the monthly rate
used throughout the engine.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from typing import Optional, Union

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

Number = Union[int, float, str, Decimal]


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and surrounding whitespace. It raises
    ``ValueError`` if conversion fails or the value is not finite.
    """
    try:
        cleaned = value.replace(",", "").strip()
        result = Decimal(cleaned)
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Coerce ints, floats, strings and Decimals to ``Decimal``.

    ``None``, blank strings and non-finite floats become ``None`` so that an
    unset input stays distinguishable from zero.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value!r}")
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        # go through repr so 0.1 stays 0.1 instead of its binary expansion
        return Decimal(repr(value))
    if isinstance(value, str):
        if not value.strip():
            return None
        return decimal_from_str(value)
    raise ValueError(f"Invalid numeric value: {value!r}")


def years_to_months(years: Optional[Number]) -> int:
    """Return ``years`` as a whole number of months, at least one.

    Half months round up (2.0416 years -> 25 months). A missing value counts
    as zero years.
    """
    y = to_decimal(years) or Decimal("0")
    months = int((y * 12).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(1, months)


def round_months(months: Number) -> Optional[int]:
    """Round a month count to an integer; ``None`` when it is not a number."""
    m = to_decimal(months)
    if m is None:
        return None
    return int(m.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def monthly_rate(apr: Decimal) -> Decimal:
    """Monthly decimal rate for an annual percentage rate (6.5 -> 0.0054166...)."""
    return apr / Decimal(100) / Decimal(12)


def clamp(value: Decimal, lower: Decimal, upper: Decimal) -> Decimal:
    return min(upper, max(lower, value))
