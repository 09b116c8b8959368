# core/money.py
"""
Decimal helpers for Quetzal and US dollar amounts
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import math

CENT = Decimal('0.01')
ZERO = Decimal('0')


def round_money(value):
    """Round to 2 decimals, half up. Only used for stored line totals and display."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def coerce_amount(value):
    """
    Turn operator or parser input into a non-negative Decimal.

    None, blanks, non-numbers, NaN/infinity and negatives all become 0.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, float):
        if not math.isfinite(value):
            return ZERO
        value = str(value)
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        return ZERO
    if not amount.is_finite() or amount < 0:
        return ZERO
    return amount


def coerce_days(value):
    """Turn a day count into a non-negative int (blanks and garbage become 0)"""
    try:
        days = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return max(days, 0)
