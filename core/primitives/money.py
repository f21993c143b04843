"""
RMX Money Primitive — Decimal Amounts and Quantities
=====================================================
All amounts, volumes and masses in the engine are Decimal.
Floats are converted through str() so 0.1 stays 0.1.

Rounding:
- money         → 2 places, ROUND_HALF_UP
- percentages   → 2 places, ROUND_HALF_UP
- volumes (m3)  → 3 places

Quantities entered by a user (quote and delivery volumes, payments)
go through require_volume / require_money, which reject anything
finer than the stored precision instead of rounding it away.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from core.errors import InvalidInput

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
MILLI = Decimal("0.001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Number, field: str = "value") -> Decimal:
    """Coerce int/float/str/Decimal into a finite Decimal."""
    if isinstance(value, bool):
        raise InvalidInput(field, value, f"{field} must be numeric, got bool.")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise InvalidInput(field, value, f"{field} is not a number: {value!r}.")
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise InvalidInput(
            field, value,
            f"{field} must be numeric, got {type(value).__name__}.",
        )
    if not result.is_finite():
        raise InvalidInput(field, value, f"{field} must be finite.")
    return result


def quantize_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_pct(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_volume(value: Number) -> Decimal:
    return to_decimal(value).quantize(MILLI, rounding=ROUND_HALF_UP)


def percent_of(amount: Number, rate_pct: Number) -> Decimal:
    """amount × rate_pct / 100, rounded to cents."""
    return quantize_money(to_decimal(amount) * to_decimal(rate_pct) / HUNDRED)


def require_positive(value: Number, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result <= ZERO:
        raise InvalidInput(field, value, f"{field} must be > 0, got {value}.")
    return result


def require_non_negative(value: Number, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result < ZERO:
        raise InvalidInput(field, value, f"{field} cannot be negative, got {value}.")
    return result


def _exact(value: Number, quantize, field: str, unit: str) -> Decimal:
    result = to_decimal(value, field)
    stored = quantize(result)
    if stored != result:
        raise InvalidInput(
            field, value,
            f"{field} {value} is finer than the ledger stores ({unit}); "
            f"it would be recorded as {stored}.",
        )
    return stored


def require_money(value: Number, field: str) -> Decimal:
    """Positive amount with at most 2 decimal places, never rounded."""
    return _exact(require_positive(value, field), quantize_money, field, "cents")


def require_volume(value: Number, field: str) -> Decimal:
    """Positive volume with at most 3 decimal places, never rounded."""
    return _exact(require_positive(value, field), quantize_volume, field, "litres")
