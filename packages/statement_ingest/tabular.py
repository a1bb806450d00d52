"""Row readers and the deterministic local tabular parser.

Readers turn a source file into a row matrix (``list[list[str]]``):

- :func:`read_csv_rows` for CSV text (stdlib :mod:`csv`, RFC 4180 quoting).
- :func:`read_xlsx_rows` for ``.xlsx`` bytes (first worksheet, via
  :mod:`openpyxl`).

:func:`try_local_parse` resolves the header and converts every following row
into the canonical ``date,description,amount`` form. It never raises for
expected conditions: an unusable header or a file with zero valid rows yields
:class:`Unavailable`, which tells the caller to escalate to remote extraction.
Malformed individual rows are skipped, not fatal.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal

from openpyxl import load_workbook

from .amounts import format_amount, parse_magnitude, parse_signed
from .dates import normalize_date
from .errors import DateParseError, HeaderNotFound
from .headers import (
    DEFAULT_KEYWORDS,
    DEFAULT_SCAN_ROWS,
    NOT_FOUND,
    ColumnMap,
    KeywordSets,
    RawRow,
    resolve_columns,
)
from .logging_setup import get_logger
from .models import CANONICAL_HEADER

DEFAULT_DESCRIPTION: str = "Transaction"

_DIGIT_RE = re.compile(r"\d")
_WS_RE = re.compile(r"\s+")
_DEBIT_MARKERS = frozenset({"debit", "dr", "d", "withdrawal", "wd"})
_CREDIT_MARKERS = frozenset({"credit", "cr", "c", "deposit", "dep"})

_logger = get_logger("statement_ingest.tabular")


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


def read_csv_rows(csv_text: str) -> list[list[str]]:
    """Parse CSV text into a row matrix; blank lines are dropped."""

    with io.StringIO(csv_text, newline="") as f:
        return [row for row in csv.reader(f) if any(c.strip() for c in row)]


def _cell_to_str(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def read_xlsx_rows(data: bytes) -> list[list[str]]:
    """Read the first worksheet of an ``.xlsx`` workbook into a row matrix.

    Cells are stringified (dates as ISO, integral floats without ``.0``);
    empty cells become ``""``. Raises whatever :mod:`openpyxl` raises for an
    unreadable workbook; the caller decides how to fall back.
    """

    wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return [[_cell_to_str(v) for v in row] for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def rows_to_csv_text(rows: Sequence[RawRow]) -> str:
    """Render a row matrix back to CSV text, dropping blank rows."""

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    for row in rows:
        if any((c or "").strip() for c in row):
            writer.writerow(row)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Canonical CSV helpers
# ---------------------------------------------------------------------------


def escape_description(desc: str) -> str:
    """Quote a description containing a comma, doubling embedded quotes."""

    if "," in desc:
        return '"' + desc.replace('"', '""') + '"'
    return desc


def _clean_text(value: str) -> str:
    return _WS_RE.sub(" ", value).strip()


# ---------------------------------------------------------------------------
# Local parse
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Parsed:
    """Successful local parse.

    ``records`` are raw-transaction dicts (``date`` already ISO, ``amount``
    signed with two decimals) ready for the ledger builder; :attr:`csv_text`
    renders the same rows in canonical CSV form.
    """

    column_map: ColumnMap
    records: list[dict[str, str | None]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.records)

    @property
    def csv_text(self) -> str:
        lines = [CANONICAL_HEADER]
        for r in self.records:
            desc = escape_description(r["description"] or "")
            lines.append(f"{r['date']},{desc},{r['amount']}")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class Unavailable:
    """Local parsing is not possible; escalate to remote extraction."""

    reason: str


type LocalParseResult = Parsed | Unavailable


def _cell(row: RawRow, index: int) -> str:
    if index == NOT_FOUND or index >= len(row):
        return ""
    return (row[index] or "").strip()


def _row_amount(row: RawRow, cmap: ColumnMap) -> Decimal | None:
    """Return the signed amount for ``row`` or ``None`` when it is not a transaction."""

    if cmap.has_debit_credit:
        cr = parse_magnitude(_cell(row, cmap.credit))
        dr = parse_magnitude(_cell(row, cmap.debit))
        if cr > 0:
            return cr
        if dr > 0:
            return -dr
        return None

    amt = parse_signed(_cell(row, cmap.amount))
    if amt == 0:
        return None
    marker = _cell(row, cmap.type).lower().rstrip(".")
    if marker in _DEBIT_MARKERS:
        return -abs(amt)
    if marker in _CREDIT_MARKERS:
        return abs(amt)
    return amt


def try_local_parse(
    rows: Sequence[RawRow],
    *,
    keywords: KeywordSets = DEFAULT_KEYWORDS,
    scan_rows: int = DEFAULT_SCAN_ROWS,
) -> LocalParseResult:
    """Deterministically convert a row matrix into canonical ledger rows.

    Skip rules, applied per row after the header: no digit in the date cell;
    debit and credit both zero/blank (or a zero single amount); a date that
    cannot be normalized. Zero surviving rows is reported as
    :class:`Unavailable`.
    """

    try:
        cmap = resolve_columns(rows, keywords=keywords, scan_rows=scan_rows)
    except HeaderNotFound as e:
        _logger.info("local_parse:unavailable reason=%s", e)
        return Unavailable(reason=str(e))

    records: list[dict[str, str | None]] = []
    skipped = 0
    for offset, row in enumerate(rows[cmap.header_index + 1 :], start=cmap.header_index + 1):
        raw_date = _cell(row, cmap.date)
        if not raw_date or not _DIGIT_RE.search(raw_date):
            skipped += 1
            continue

        if cmap.description != NOT_FOUND:
            desc = _clean_text(_cell(row, cmap.description))
        else:
            desc = DEFAULT_DESCRIPTION

        amount = _row_amount(row, cmap)
        if amount is None:
            skipped += 1
            continue

        try:
            iso = normalize_date(raw_date)
        except DateParseError as e:
            _logger.debug("local_parse:row_skipped row=%d reason=%s", offset, e)
            skipped += 1
            continue

        records.append(
            {
                "date": iso,
                "description": desc,
                "amount": format_amount(amount),
                "category": _cell(row, cmap.category) or None,
            }
        )

    if not records:
        _logger.info("local_parse:unavailable reason=no_rows skipped=%d", skipped)
        return Unavailable(reason="no transaction rows found after the header")

    _logger.info(
        "local_parse:done header_index=%d rows=%d skipped=%d",
        cmap.header_index,
        len(records),
        skipped,
    )
    return Parsed(column_map=cmap, records=records)


__all__ = [
    "DEFAULT_DESCRIPTION",
    "LocalParseResult",
    "Parsed",
    "Unavailable",
    "escape_description",
    "read_csv_rows",
    "read_xlsx_rows",
    "rows_to_csv_text",
    "try_local_parse",
]
