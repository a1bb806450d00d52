"""Header resolution for arbitrary bank-statement tables.

Statements rarely start with their column header: banks prepend account
numbers, addresses, statement periods and so on. The resolver scans the first
``scan_rows`` rows for the first one that looks like a header (a date keyword
plus an amount/debit/credit keyword), then maps each logical column to an
index.

Keyword lists are ranked configuration data (:class:`KeywordSets`). The
column-finding rule iterates keywords in list order and returns the first cell
that contains the keyword; keyword order, not cell order, breaks ties. New
bank layouts are supported by passing a different ``KeywordSets``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .errors import HeaderNotFound
from .logging_setup import get_logger

# A single row of a source table, as strings. Readers are responsible for
# stringifying cells; empty cells are "".
type RawRow = Sequence[str]

NOT_FOUND: int = -1
DEFAULT_SCAN_ROWS: int = 20

_TOKEN_SPLIT_RE = re.compile(r"[^a-z]+")

_logger = get_logger("statement_ingest.headers")


@dataclass(frozen=True, slots=True)
class KeywordSets:
    """Ranked, lowercase keyword lists for each logical column."""

    date: tuple[str, ...] = (
        "date",
        "txn date",
        "transaction date",
        "posting date",
        "value date",
        "book date",
    )
    description: tuple[str, ...] = (
        "description",
        "narration",
        "particulars",
        "details",
        "memo",
        "remarks",
        "reference",
        "transaction details",
    )
    amount: tuple[str, ...] = ("amount", "transaction amount", "value", "sum", "total")
    debit: tuple[str, ...] = (
        "withdrawal",
        "debit",
        "debit amount",
        "dr",
        "withdrawal amt",
        "debit amt",
    )
    credit: tuple[str, ...] = (
        "deposit",
        "credit",
        "credit amount",
        "cr",
        "deposit amt",
        "credit amt",
    )
    type: tuple[str, ...] = ("transaction type", "dr/cr", "cr/dr", "type")
    category: tuple[str, ...] = ("category",)

    @property
    def value_keywords(self) -> tuple[str, ...]:
        return self.amount + self.debit + self.credit


DEFAULT_KEYWORDS = KeywordSets()


@dataclass(frozen=True, slots=True)
class ColumnMap:
    """Column indices for one header row; ``NOT_FOUND`` (-1) when absent."""

    header_index: int
    date: int
    description: int = NOT_FOUND
    amount: int = NOT_FOUND
    debit: int = NOT_FOUND
    credit: int = NOT_FOUND
    type: int = NOT_FOUND
    category: int = NOT_FOUND

    @property
    def has_debit_credit(self) -> bool:
        return self.debit != NOT_FOUND and self.credit != NOT_FOUND

    @property
    def is_viable(self) -> bool:
        return self.date != NOT_FOUND and (self.amount != NOT_FOUND or self.has_debit_credit)


def _normalize_cells(row: RawRow) -> list[str]:
    return [(c or "").strip().lower() for c in row]


def _matches(cell: str, keyword: str) -> bool:
    # Two-letter abbreviations ("dr", "cr") must be a whole token; otherwise
    # "cr" would match "description".
    if len(keyword) <= 2:
        return keyword in _TOKEN_SPLIT_RE.split(cell)
    return keyword in cell


def _any_keyword(cells: Sequence[str], keywords: Sequence[str]) -> bool:
    return any(_matches(c, k) for c in cells for k in keywords)


def find_column(
    cells: Sequence[str], keywords: Sequence[str], *, exclude: set[int] | None = None
) -> int:
    """Return the index of the first cell containing the highest-ranked keyword.

    ``cells`` must already be trimmed and lowercased. ``exclude`` lets the
    caller skip columns already claimed by a higher-priority role.
    """

    for k in keywords:
        for i, c in enumerate(cells):
            if exclude and i in exclude:
                continue
            if _matches(c, k):
                return i
    return NOT_FOUND


def find_header_row(
    rows: Sequence[RawRow],
    *,
    keywords: KeywordSets = DEFAULT_KEYWORDS,
    scan_rows: int = DEFAULT_SCAN_ROWS,
) -> int:
    """Return the index of the first header-looking row within ``scan_rows``.

    Rows with fewer than two cells are never headers. Raises
    :class:`HeaderNotFound` when the window contains no candidate.
    """

    for i, row in enumerate(rows[:scan_rows]):
        if not row or len(row) < 2:
            continue
        cells = _normalize_cells(row)
        if _any_keyword(cells, keywords.date) and _any_keyword(cells, keywords.value_keywords):
            return i
    raise HeaderNotFound(f"no header row within the first {scan_rows} rows")


def resolve_columns(
    rows: Sequence[RawRow],
    *,
    keywords: KeywordSets = DEFAULT_KEYWORDS,
    scan_rows: int = DEFAULT_SCAN_ROWS,
) -> ColumnMap:
    """Locate the header row and map each logical column to an index.

    Raises :class:`HeaderNotFound` when no header row exists, when the date
    column cannot be found, or when neither a single amount column nor both
    debit and credit columns exist.
    """

    header_index = find_header_row(rows, keywords=keywords, scan_rows=scan_rows)
    cells = _normalize_cells(rows[header_index])

    date_i = find_column(cells, keywords.date)
    if date_i == NOT_FOUND:
        raise HeaderNotFound(f"header row {header_index} has no date column")
    claimed = {date_i}

    def _claim(kw: Sequence[str]) -> int:
        i = find_column(cells, kw, exclude=claimed)
        if i != NOT_FOUND:
            claimed.add(i)
        return i

    # Description first so short keywords cannot claim it; debit/credit
    # before the single amount column so "Debit Amount" is not mistaken for
    # the single amount.
    desc_i = _claim(keywords.description)
    debit_i = _claim(keywords.debit)
    credit_i = _claim(keywords.credit)
    if debit_i == NOT_FOUND or credit_i == NOT_FOUND:
        # A lone debit or credit column is not a usable pair; release it.
        claimed.discard(debit_i)
        claimed.discard(credit_i)
        debit_i = credit_i = NOT_FOUND
    amount_i = NOT_FOUND if debit_i != NOT_FOUND else _claim(keywords.amount)
    type_i = _claim(keywords.type)
    category_i = _claim(keywords.category)

    cmap = ColumnMap(
        header_index=header_index,
        date=date_i,
        description=desc_i,
        amount=amount_i,
        debit=debit_i,
        credit=credit_i,
        type=type_i,
        category=category_i,
    )
    if not cmap.is_viable:
        raise HeaderNotFound(
            f"header row {header_index} has no amount column and no debit/credit pair"
        )
    _logger.debug(
        "headers:resolved header_index=%d date=%d description=%d amount=%d debit=%d credit=%d",
        header_index,
        date_i,
        desc_i,
        amount_i,
        debit_i,
        credit_i,
    )
    return cmap


__all__ = [
    "DEFAULT_KEYWORDS",
    "DEFAULT_SCAN_ROWS",
    "NOT_FOUND",
    "ColumnMap",
    "KeywordSets",
    "RawRow",
    "find_column",
    "find_header_row",
    "resolve_columns",
]
