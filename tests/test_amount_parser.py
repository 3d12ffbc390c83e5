"""Tests for amount parsing."""

from decimal import Decimal

import pytest

from ledgerfix.utils.amount_parser import parse_amount, to_decimal


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1500", Decimal("1500")),
        ("-250.75", Decimal("-250.75")),
        ("1,234.56", Decimal("1234.56")),
        ("(123.45)", Decimal("-123.45")),
        ("Rs 1,200", Decimal("1200")),
        ("PKR 99.5", Decimal("99.5")),
        ("$1,200.00", Decimal("1200.00")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "abc", "NaN", "Infinity"])
def test_parse_amount_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_amount(text)


def test_to_decimal():
    assert to_decimal(None) == Decimal("0")
    assert to_decimal("") == Decimal("0")
    assert to_decimal(12) == Decimal("12")
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal("1,000.25") == Decimal("1000.25")
    value = Decimal("3.30")
    assert to_decimal(value) is value


def test_to_decimal_rejects_non_amounts():
    for value in (True, [1], {"amount": 1}):
        with pytest.raises(ValueError, match="Not an amount"):
            to_decimal(value)
