"""
Amount Sanitization

Every amount read anywhere in the app - model output, stored records,
form input - goes through `sanitize_amount`. It never raises and never
returns NaN, infinity or a negative number; anything unusable becomes 0.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")

_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_NOISE = re.compile(r"[\s,¥￥元]|RMB|CNY", re.IGNORECASE)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, str):
        # Leading-number parse: "35元" -> 35, "¥1,280.5" -> 1280.5, "abc" -> 0
        match = _LEADING_NUMBER.match(_NOISE.sub("", value))
        if not match:
            return ZERO
        return Decimal(match.group())
    return ZERO


def sanitize_amount(value: Any, fallback: Decimal = ZERO) -> Decimal:
    """
    Coerce `value` to a finite, non-negative Decimal rounded to cents.

    Returns `fallback` when the value is missing, unparseable, non-finite
    or negative.
    """
    try:
        amount = _to_decimal(value)
        if not amount.is_finite() or amount < 0:
            return fallback
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        # Also covers values too large to quantize to cents
        return fallback


def format_amount(amount: Decimal) -> str:
    """Render an amount without trailing zero cents: 35.00 -> '35', 3.50 -> '3.5'."""
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal("1")))
    return format(amount.normalize(), "f")
