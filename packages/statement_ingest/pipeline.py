"""Two-stage statement ingestion: local parse first, remote extraction second.

Routing by file type:

- ``.csv`` and pasted text: local parse of the CSV rows; on
  :class:`~statement_ingest.tabular.Unavailable`, chunked remote extraction of
  the text.
- ``.xlsx``: local parse of the first worksheet; on ``Unavailable`` the sheet
  is rendered as CSV text for chunked remote extraction. A workbook that
  cannot be opened is sent whole as a document.
- ``.xls`` and ``.pdf``: document extraction.

Unsupported extensions raise :class:`UnsupportedFileType` before any parsing.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Literal
from zipfile import BadZipFile

from openpyxl.utils.exceptions import InvalidFileException

from . import prompting
from .errors import UnsupportedFileType
from .extraction import ServiceContext, collect_csv, extract_document_stream, extract_text_stream
from .ledger import DEFAULT_CURRENCY, build_ledger, build_ledger_from_csv
from .logging_setup import get_logger
from .models import CompleteEvent, ExtractionEvent, NormalizedTransaction
from .tabular import (
    Parsed,
    read_csv_rows,
    read_xlsx_rows,
    rows_to_csv_text,
    try_local_parse,
)

type FileKind = Literal["csv", "xlsx", "xls", "pdf"]

_KINDS: dict[str, FileKind] = {".csv": "csv", ".xlsx": "xlsx", ".xls": "xls", ".pdf": "pdf"}
_DOCUMENT_MEDIA_TYPES: dict[FileKind, str] = {
    "pdf": prompting.PDF_MEDIA_TYPE,
    "xls": prompting.XLS_MEDIA_TYPE,
}

_logger = get_logger("statement_ingest.pipeline")


def detect_file_type(file_name: str) -> FileKind:
    """Return the file kind for ``file_name`` based on its extension."""

    ext = os.path.splitext(file_name)[1].lower()
    kind = _KINDS.get(ext)
    if kind is None:
        raise UnsupportedFileType(file_name)
    return kind


def _decode_text(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _as_bytes(content: bytes | str) -> bytes:
    return content if isinstance(content, bytes) else content.encode("utf-8")


def _route(
    ctx: ServiceContext,
    *,
    file_name: str | None,
    data: bytes | None,
    raw_text: str | None,
) -> Parsed | Iterator[ExtractionEvent]:
    """Return local parse rows, or the (lazy) remote extraction event stream."""

    content: bytes | str
    if file_name is None:
        if raw_text is None:
            raise ValueError("Either a file (name and bytes) or raw_text is required")
        name = "pasted-text"
        kind: FileKind = "csv"
        content = raw_text
    else:
        name = os.path.basename(file_name)
        kind = detect_file_type(name)
        if data is not None:
            content = data
        elif raw_text is not None:
            content = raw_text
        else:
            raise ValueError(f"No content supplied for {name!r}")

    _logger.info("ingest:start file=%s kind=%s", name, kind)

    media_type = _DOCUMENT_MEDIA_TYPES.get(kind)
    if media_type is not None:
        return extract_document_stream(_as_bytes(content), media_type, ctx, file_name=name)

    text: str | None = None
    if kind == "xlsx":
        blob = _as_bytes(content)
        try:
            rows = read_xlsx_rows(blob)
        except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
            _logger.warning("ingest:xlsx_unreadable file=%s error=%s", name, e.__class__.__name__)
            return extract_document_stream(blob, prompting.XLSX_MEDIA_TYPE, ctx, file_name=name)
    else:
        text = content if isinstance(content, str) else _decode_text(content)
        rows = read_csv_rows(text)

    result = try_local_parse(rows, scan_rows=ctx.settings.header_scan_rows)
    if isinstance(result, Parsed):
        return result

    _logger.info("ingest:escalate file=%s reason=%s", name, result.reason)
    if text is None:
        text = rows_to_csv_text(rows)
    return extract_text_stream(text, ctx, file_name=name)


def _local_complete(parsed: Parsed) -> CompleteEvent:
    return CompleteEvent(
        csvText=parsed.csv_text,
        rowCount=parsed.row_count,
        message=f"Extracted {parsed.row_count} transactions",
    )


def ingest_stream(
    ctx: ServiceContext,
    *,
    file_name: str | None = None,
    data: bytes | None = None,
    raw_text: str | None = None,
) -> Iterator[ExtractionEvent]:
    """Yield progress events ending in one ``complete`` or ``error`` event.

    A successful local parse yields a single ``complete`` event.
    """

    routed = _route(ctx, file_name=file_name, data=data, raw_text=raw_text)
    if isinstance(routed, Parsed):
        yield _local_complete(routed)
        return
    yield from routed


def ingest_csv(
    ctx: ServiceContext,
    *,
    file_name: str | None = None,
    data: bytes | None = None,
    raw_text: str | None = None,
) -> str:
    """Return canonical CSV for a statement or raise ``NoTransactionsExtracted``."""

    routed = _route(ctx, file_name=file_name, data=data, raw_text=raw_text)
    if isinstance(routed, Parsed):
        return routed.csv_text
    return collect_csv(routed)


def ingest_to_ledger(
    ctx: ServiceContext,
    *,
    file_name: str | None = None,
    data: bytes | None = None,
    raw_text: str | None = None,
    currency: str = DEFAULT_CURRENCY,
) -> list[NormalizedTransaction]:
    """Run the full pipeline and the ledger builder.

    Locally parsed rows go straight to the builder so a recognized category
    column survives; remote output is read back from canonical CSV.
    """

    routed = _route(ctx, file_name=file_name, data=data, raw_text=raw_text)
    if isinstance(routed, Parsed):
        return build_ledger(routed.records, currency=currency)
    return build_ledger_from_csv(collect_csv(routed), currency=currency)


__all__ = [
    "FileKind",
    "detect_file_type",
    "ingest_csv",
    "ingest_stream",
    "ingest_to_ledger",
]
