"""Tests for money helpers"""
from decimal import Decimal

from shopcart.services.money import divide, percent, round_money, to_decimal, to_optional_decimal


def test_to_decimal_from_float_keeps_short_repr():
    assert to_decimal(0.1) == Decimal("0.1")


def test_to_decimal_invalid_is_zero():
    assert to_decimal("abc") == Decimal("0")
    assert to_decimal(None) == Decimal("0")


def test_to_optional_decimal_keeps_none():
    assert to_optional_decimal(None) is None
    assert to_optional_decimal("1.5") == Decimal("1.5")


def test_round_money_half_up():
    assert round_money(Decimal("2.005")) == Decimal("2.01")
    assert round_money(Decimal("2.004")) == Decimal("2.00")


def test_divide_by_zero():
    assert divide(10, 0) == Decimal("0")


def test_percent():
    assert percent(Decimal("80"), 25) == Decimal("20")
