"""Transaction ledger builder.

Turns raw rows (or canonical CSV text) into :class:`NormalizedTransaction`
values. Unlike the local parser, nothing is skipped here: rows reaching this
stage are expected to be well-formed already, so the first row that fails date
or amount normalization aborts the batch with a :class:`RowNormalizationError`
carrying its 1-based index.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from .amounts import normalize_amount
from .dates import normalize_date
from .errors import AmountParseError, DateParseError, RowNormalizationError
from .logging_setup import get_logger
from .models import NormalizedTransaction, RawTransaction

DEFAULT_CURRENCY: str = "USD"

_logger = get_logger("statement_ingest.ledger")


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


def build_ledger(
    rows: Iterable[RawTransaction], *, currency: str = DEFAULT_CURRENCY
) -> list[NormalizedTransaction]:
    """Normalize every row into a :class:`NormalizedTransaction`.

    An explicit ``type`` of exactly ``"credit"`` or ``"debit"`` overrides the
    sign-derived type. Empty descriptions become ``"Transaction {n}"``; empty
    categories become ``None``.
    """

    code = (_text(currency) or DEFAULT_CURRENCY).upper()
    out: list[NormalizedTransaction] = []
    for i, row in enumerate(rows, start=1):
        try:
            iso = normalize_date(_text(row.get("date")))
            amount = normalize_amount(row.get("amount"))
        except (DateParseError, AmountParseError) as e:
            _logger.error("ledger:row_failed row=%d error=%s", i, e)
            raise RowNormalizationError(i, e) from e

        explicit = row.get("type")
        tx_type = explicit if explicit in ("credit", "debit") else amount.type
        out.append(
            NormalizedTransaction(
                date=iso,
                description=_text(row.get("description")) or f"Transaction {i}",
                amount=amount.amount,
                currency=code,
                type=tx_type,
                category=_text(row.get("category")) or None,
            )
        )
    _logger.info("ledger:built rows=%d currency=%s", len(out), code)
    return out


def read_canonical_csv(csv_text: str) -> list[dict[str, str]]:
    """Read canonical ``date,description,amount`` CSV into raw rows."""

    with io.StringIO(csv_text.strip(), newline="") as f:
        reader = csv.DictReader(f, skipinitialspace=True)
        if reader.fieldnames is not None:
            reader.fieldnames = [(name or "").strip().lower() for name in reader.fieldnames]
        return [
            {k: (v or "") for k, v in row.items() if k is not None}
            for row in reader
            if any((v or "").strip() for v in row.values() if isinstance(v, str))
        ]


def build_ledger_from_csv(
    csv_text: str, *, currency: str = DEFAULT_CURRENCY
) -> list[NormalizedTransaction]:
    return build_ledger(read_canonical_csv(csv_text), currency=currency)


__all__ = [
    "DEFAULT_CURRENCY",
    "build_ledger",
    "build_ledger_from_csv",
    "read_canonical_csv",
]
