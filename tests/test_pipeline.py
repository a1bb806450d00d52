# ruff: noqa: I001
from __future__ import annotations

import io
from decimal import Decimal

import pytest
from openpyxl import Workbook

from statement_ingest.errors import NoTransactionsExtracted, UnsupportedFileType
from statement_ingest.extraction import ServiceContext
from statement_ingest.models import CompleteEvent, ErrorEvent
from statement_ingest.pipeline import detect_file_type, ingest_csv, ingest_stream, ingest_to_ledger
from statement_ingest.settings import IngestSettings
from tests.helpers.openai_stub import OpenAIStub, fixed

REMOTE_CSV = "date,description,amount\n2025-01-15,Salary,3000.00\n2025-01-16,Rent,-1500.00"


def _ctx(stub: OpenAIStub) -> ServiceContext:
    return ServiceContext(client=stub, settings=IngestSettings())


def _xlsx_bytes(rows: list[list[object]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _file_part(stub: OpenAIStub) -> dict:
    return stub.calls[0]["input"][0]["content"][0]


# ---- File type detection -----------------------------------------------------


@pytest.mark.parametrize(
    ("name", "kind"),
    [("a.csv", "csv"), ("A.XLSX", "xlsx"), ("legacy.xls", "xls"), ("dir/stmt.Pdf", "pdf")],
)
def test_detect_file_type(name: str, kind: str) -> None:
    assert detect_file_type(name) == kind


def test_unsupported_file_type_fails_before_parsing() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    with pytest.raises(UnsupportedFileType) as excinfo:
        ingest_csv(_ctx(stub), file_name="statement.docx", data=b"whatever")
    assert excinfo.value.file_name == "statement.docx"
    assert stub.calls == []


# ---- End-to-end scenarios ----------------------------------------------------


def test_single_amount_csv_to_ledger_without_remote_calls() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    data = b"date,amount,narration\n15/01/2025,1200.00,Deposit\n16/01/2025,-49.99,Coffee"
    txs = ingest_to_ledger(_ctx(stub), file_name="jan.csv", data=data)

    assert stub.calls == []
    assert [(t.date, t.amount, t.type) for t in txs] == [
        ("2025-01-15", Decimal("1200.00"), "credit"),
        ("2025-01-16", Decimal("49.99"), "debit"),
    ]


def test_debit_credit_csv_to_ledger() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    data = "Date,Particulars,Withdrawal,Deposit\n01-03-2025,ATM,500.00,\n".encode()
    [tx] = ingest_to_ledger(_ctx(stub), file_name="march.csv", data=data)
    assert (tx.date, tx.amount, tx.type, tx.description) == (
        "2025-03-01",
        Decimal("500.00"),
        "debit",
        "ATM",
    )


def test_no_header_escalates_to_remote_extraction() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    text = "ACME BANK\nJan statement\n15 Jan Salary 3000.00 CR\n16 Jan Rent 1500.00 DR\n"
    txs = ingest_to_ledger(_ctx(stub), raw_text=text, currency="eur")

    assert len(stub.calls) == 1
    assert "15 Jan Salary 3000.00 CR" in stub.calls[0]["input"]
    assert [(t.description, t.type, t.currency) for t in txs] == [
        ("Salary", "credit", "EUR"),
        ("Rent", "debit", "EUR"),
    ]


def test_local_category_column_reaches_the_ledger() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    text = "Date,Description,Amount,Category\n2025-01-15,Coffee,-4.50,Dining\n"
    [tx] = ingest_to_ledger(_ctx(stub), raw_text=text)
    assert tx.category == "Dining"


# ---- Streams -----------------------------------------------------------------


def test_local_parse_streams_a_single_complete_event() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    data = b"date,amount,narration\n15/01/2025,1200.00,Deposit\n"
    events = list(ingest_stream(_ctx(stub), file_name="jan.csv", data=data))
    assert len(events) == 1
    [event] = events
    assert isinstance(event, CompleteEvent)
    assert event.rowCount == 1
    assert event.message == "Extracted 1 transactions"
    assert event.csvText == "date,description,amount\n2025-01-15,Deposit,1200.00"


def test_remote_failure_surfaces_as_no_transactions() -> None:
    stub = OpenAIStub(fixed("date,description,amount"))
    with pytest.raises(NoTransactionsExtracted):
        ingest_csv(_ctx(stub), raw_text="nothing useful here")
    events = list(ingest_stream(_ctx(stub), raw_text="nothing useful here"))
    assert isinstance(events[-1], ErrorEvent)


# ---- Documents and spreadsheets ----------------------------------------------


def test_pdf_goes_to_document_extraction() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    csv_text = ingest_csv(_ctx(stub), file_name="stmt.pdf", data=b"%PDF-1.4")
    assert csv_text == REMOTE_CSV
    assert _file_part(stub)["file_data"].startswith("data:application/pdf;base64,")


def test_xls_goes_to_document_extraction() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    ingest_csv(_ctx(stub), file_name="old.xls", data=b"\xd0\xcf\x11\xe0")
    assert _file_part(stub)["file_data"].startswith("data:application/vnd.ms-excel;base64,")


def test_xlsx_is_parsed_locally() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    data = _xlsx_bytes(
        [
            ["Statement of account", None, None, None],
            ["Txn Date", "Narration", "Debit", "Credit"],
            ["02/01/2025", "Transfer in", None, 250],
            ["03/01/2025", "Card, online", 19.5, None],
        ]
    )
    csv_text = ingest_csv(_ctx(stub), file_name="jan.xlsx", data=data)
    assert stub.calls == []
    assert csv_text.splitlines() == [
        "date,description,amount",
        "2025-01-02,Transfer in,250.00",
        '2025-01-03,"Card, online",-19.50',
    ]


def test_xlsx_without_header_is_sent_as_csv_text() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    data = _xlsx_bytes([["Salary", 3000], ["Rent", -1500]])
    assert ingest_csv(_ctx(stub), file_name="odd.xlsx", data=data) == REMOTE_CSV
    payload = stub.calls[0]["input"]
    assert isinstance(payload, str)
    assert "Salary,3000" in payload


def test_unreadable_xlsx_is_sent_as_a_document() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    ingest_csv(_ctx(stub), file_name="broken.xlsx", data=b"not a zip file")
    mime = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert _file_part(stub)["file_data"].startswith(f"data:{mime};base64,")


# ---- Content sources ---------------------------------------------------------


def test_named_file_can_be_supplied_as_text() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    csv_text = ingest_csv(
        _ctx(stub), file_name="jan.csv", raw_text="Date,Details,Amount\n15/01/2025,Bus,-2.50"
    )
    assert csv_text == "date,description,amount\n2025-01-15,Bus,-2.50"
    assert stub.calls == []

    ingest_csv(_ctx(stub), file_name="scan.pdf", raw_text="%PDF-1.4")
    assert _file_part(stub)["file_data"].startswith("data:application/pdf;base64,")


def test_bytes_win_over_text_for_named_files() -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    csv_text = ingest_csv(
        _ctx(stub),
        file_name="jan.csv",
        data="\ufeffDate,Details,Amount\n15/01/2025,Bus,-2.50".encode(),
        raw_text="ignored",
    )
    assert csv_text == "date,description,amount\n2025-01-15,Bus,-2.50"


@pytest.mark.parametrize(
    "kwargs", [{}, {"file_name": "jan.csv"}, {"data": b"date,amount\n01/01/2025,1"}]
)
def test_missing_content_is_a_value_error(kwargs: dict) -> None:
    stub = OpenAIStub(fixed(REMOTE_CSV))
    with pytest.raises(ValueError):
        ingest_csv(_ctx(stub), **kwargs)
    assert stub.calls == []
