from __future__ import annotations

from decimal import Decimal

import pytest

from statement_ingest.amounts import (
    format_amount,
    normalize_amount,
    parse_magnitude,
    parse_signed,
)
from statement_ingest.errors import AmountParseError


@pytest.mark.parametrize(
    ("raw", "amount", "tx_type"),
    [
        ("1200.00", Decimal("1200.00"), "credit"),
        ("-49.99", Decimal("49.99"), "debit"),
        ("$1,234.56", Decimal("1234.56"), "credit"),
        ("₹1,23,456.78", Decimal("123456.78"), "credit"),
        ("€ 99", Decimal("99"), "credit"),
        ("-£12.50", Decimal("12.50"), "debit"),
        ("(1,234.56)", Decimal("1234.56"), "debit"),
        ("+15", Decimal("15"), "credit"),
        ("0", Decimal("0"), "credit"),
        (-7.25, Decimal("7.25"), "debit"),
        (300, Decimal("300"), "credit"),
    ],
)
def test_normalize_amount_magnitude_and_type(raw, amount: Decimal, tx_type: str) -> None:
    result = normalize_amount(raw)
    assert result.amount == amount
    assert result.amount >= 0
    assert result.type == tx_type


def test_currency_symbols_do_not_change_the_value() -> None:
    plain = normalize_amount("1234.56").amount
    assert normalize_amount("$1,234.56").amount == plain
    assert normalize_amount("¥1234.56").amount == plain
    assert normalize_amount("1,234.56£").amount == plain


@pytest.mark.parametrize("raw", ["", "abc", "12.3.4", "--", "$", "NaN", "Infinity"])
def test_normalize_amount_rejects_non_numbers(raw: str) -> None:
    with pytest.raises(AmountParseError):
        normalize_amount(raw)


def test_lenient_parsers_return_zero_for_blank_cells() -> None:
    assert parse_magnitude("") == 0
    assert parse_magnitude(None) == 0
    assert parse_magnitude("-") == 0
    assert parse_magnitude("-500.00") == Decimal("500.00")
    assert parse_signed("n/a") == 0
    assert parse_signed("(20)") == Decimal("-20")


def test_format_amount_always_has_two_decimals() -> None:
    assert format_amount(Decimal("1200")) == "1200.00"
    assert format_amount(Decimal("-49.995")) == "-50.00"
    assert format_amount(Decimal("0.1")) == "0.10"


@pytest.mark.parametrize(
    "raw", [float("nan"), float("inf"), float("-inf"), Decimal("NaN"), Decimal("Infinity")]
)
def test_normalize_amount_rejects_non_finite_numbers(raw: object) -> None:
    with pytest.raises(AmountParseError):
        normalize_amount(raw)
