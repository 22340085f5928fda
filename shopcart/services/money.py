"""
Money Utilities - Decimal operations for cart amounts.

Values stay unrounded through intermediate arithmetic; call
round_money() only where a final amount is produced.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

Number = Union[str, int, float, Decimal]

# 2 decimal places for every cart amount
MONEY_PRECISION = Decimal("0.01")


def to_decimal(value: Union[Number, None]) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid
    """
    if value is None:
        return Decimal("0")

    if isinstance(value, Decimal):
        return value

    try:
        if isinstance(value, float):
            # via str so 0.1 stays 0.1
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def to_optional_decimal(value: Union[Number, None]) -> Decimal | None:
    """Like to_decimal, but keeps None as None."""
    if value is None:
        return None
    return to_decimal(value)


def round_money(value: Number) -> Decimal:
    """Round a monetary value to 2 decimal places (half up)."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def subtract(a: Number, b: Number) -> Decimal:
    """Safe subtraction of monetary values."""
    return to_decimal(a) - to_decimal(b)


def multiply(value: Number, factor: Number) -> Decimal:
    """Safe multiplication of monetary value by a factor."""
    return to_decimal(value) * to_decimal(factor)


def divide(value: Number, divisor: Number) -> Decimal:
    """Safe division of monetary value. Division by zero yields 0."""
    d = to_decimal(divisor)
    if d == 0:
        return Decimal("0")
    return to_decimal(value) / d


def percent(value: Number, percent_value: Number) -> Decimal:
    """Calculate percentage of a monetary value."""
    return multiply(value, divide(percent_value, 100))
