from __future__ import annotations

from decimal import Decimal

import pytest

from statement_ingest.errors import AmountParseError, DateParseError, RowNormalizationError
from statement_ingest.ledger import build_ledger, build_ledger_from_csv, read_canonical_csv
from statement_ingest.models import NormalizedTransaction


def test_build_ledger_from_canonical_csv() -> None:
    csv_text = "date,description,amount\n2025-01-15,Deposit,1200.00\n2025-01-16,Coffee,-49.99\n"
    txs = build_ledger_from_csv(csv_text)
    assert txs == [
        NormalizedTransaction("2025-01-15", "Deposit", Decimal("1200.00"), "USD", "credit"),
        NormalizedTransaction("2025-01-16", "Coffee", Decimal("49.99"), "USD", "debit"),
    ]


def test_quoted_descriptions_survive() -> None:
    txs = build_ledger_from_csv('date,description,amount\n2025-02-01,"Shop ""A"", Inc",-9.99')
    assert txs[0].description == 'Shop "A", Inc'


def test_explicit_type_overrides_sign() -> None:
    rows = [
        {"date": "2025-01-15", "description": "Refund", "amount": "-10", "type": "credit"},
        {"date": "2025-01-15", "description": "Fee", "amount": "5", "type": "debit"},
        {"date": "2025-01-15", "description": "Other", "amount": "-5", "type": "DR"},
    ]
    assert [t.type for t in build_ledger(rows)] == ["credit", "debit", "debit"]
    assert all(t.amount >= 0 for t in build_ledger(rows))


def test_defaults_for_description_category_and_currency() -> None:
    rows = [
        {"date": "15/01/2025", "description": "", "amount": "1", "category": "  "},
        {"date": "16/01/2025", "description": "Bus", "amount": "2", "category": "Transport"},
    ]
    txs = build_ledger(rows, currency="inr")
    assert txs[0].description == "Transaction 1"
    assert txs[0].category is None
    assert txs[1].category == "Transport"
    assert {t.currency for t in txs} == {"INR"}


def test_row_errors_are_fatal_and_carry_the_row_index() -> None:
    rows = [
        {"date": "2025-01-15", "description": "ok", "amount": "1"},
        {"date": "2025-01-16", "description": "bad amount", "amount": "abc"},
    ]
    with pytest.raises(RowNormalizationError) as excinfo:
        build_ledger(rows)
    assert excinfo.value.row_index == 2
    assert str(excinfo.value).startswith("Row 2: ")
    assert isinstance(excinfo.value.__cause__, AmountParseError)

    with pytest.raises(RowNormalizationError) as excinfo:
        build_ledger([{"date": "someday", "amount": "1"}])
    assert excinfo.value.row_index == 1
    assert isinstance(excinfo.value.__cause__, DateParseError)


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), Decimal("NaN")])
def test_non_finite_amounts_are_row_errors(bad: object) -> None:
    rows = [
        {"date": "2025-01-15", "description": "ok", "amount": 1.5},
        {"date": "2025-01-16", "description": "broken", "amount": bad},
    ]
    with pytest.raises(RowNormalizationError) as excinfo:
        build_ledger(rows)
    assert excinfo.value.row_index == 2
    assert isinstance(excinfo.value.__cause__, AmountParseError)


def test_to_json_dict() -> None:
    tx = NormalizedTransaction("2025-03-01", "ATM", Decimal("500.00"), "USD", "debit")
    assert tx.to_json_dict() == {
        "date": "2025-03-01",
        "description": "ATM",
        "amount": 500.0,
        "currency": "USD",
        "type": "debit",
        "category": None,
    }


def test_read_canonical_csv_skips_blank_lines() -> None:
    rows = read_canonical_csv("Date, Description, Amount\n\n2025-01-15,Deposit,1.00\n")
    assert rows == [{"date": "2025-01-15", "description": "Deposit", "amount": "1.00"}]
