from datetime import date, datetime
from decimal import Decimal

import pytest

import formatters


@pytest.mark.parametrize(
    "value,expected",
    [(1234, "₦1,234"), ("1234.5", "₦1,234.50"), (None, "₦0"), (Decimal("0.10"), "₦0.10")],
)
def test_currency(value, expected):
    assert formatters.currency(value, symbol="₦") == expected


def test_format_number_strips_trailing_zeros():
    assert formatters.format_number(Decimal("100.00")) == "100"
    assert formatters.format_number(Decimal("12.50")) == "12.5"
    assert formatters.format_number(None) == "0"


def test_to_decimal_treats_garbage_as_zero():
    assert formatters.to_decimal("n/a") == 0
    assert formatters.to_decimal(True) == 0


def test_dates():
    assert formatters.iso_date(datetime(2024, 1, 5, 9, 30)) == "2024-01-05"
    assert formatters.iso_date(None) == ""
    assert formatters.parse_date("2024-01-05T10:00:00Z") == date(2024, 1, 5)
    assert formatters.parse_date("soon") is None
    assert formatters.short_date("2024-01-05") == "Jan 5"
