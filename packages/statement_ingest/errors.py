"""Exception taxonomy for statement ingestion.

Row-level errors (dates, amounts) subclass ``ValueError`` so callers that only
care about "bad input" can catch the builtin. Whether a row-level error is
skipped or surfaced depends on the stage that hit it: the local tabular parser
skips the row, the ledger builder wraps it in :class:`RowNormalizationError`.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for all statement-ingest errors."""


class DateParseError(IngestError, ValueError):
    """A date cell could not be resolved to a calendar date."""


class InvalidDateValues(DateParseError):
    """A date matched a known shape but its day/month values are out of range."""


class AmountParseError(IngestError, ValueError):
    """An amount cell could not be resolved to a number."""


class HeaderNotFound(IngestError, LookupError):
    """No row in the scan window looks like a statement header."""


class RemoteExtractionFailure(IngestError, RuntimeError):
    """A single chunk's remote extraction call failed."""

    def __init__(self, message: str, *, chunk_index: int) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index


class ExtractionFormatError(IngestError, ValueError):
    """The remote extractor returned text that cannot be read as CSV."""


class NoTransactionsExtracted(IngestError):
    """Neither the local parser nor the remote extractor produced any rows."""

    def __init__(self, message: str = "Could not extract transactions from this file.") -> None:
        super().__init__(message)


class UnsupportedFileType(IngestError, ValueError):
    def __init__(self, file_name: str) -> None:
        super().__init__(
            f"Unsupported file type: {file_name!r} (expected .csv, .xlsx, .xls or .pdf)"
        )
        self.file_name = file_name


class RowNormalizationError(IngestError, ValueError):
    """A row handed to the ledger builder violated the canonical contract.

    ``row_index`` is 1-based. The underlying date/amount error is chained as
    ``__cause__`` by the raiser.
    """

    def __init__(self, row_index: int, cause: Exception) -> None:
        super().__init__(f"Row {row_index}: {cause}")
        self.row_index = row_index


__all__ = [
    "AmountParseError",
    "DateParseError",
    "ExtractionFormatError",
    "HeaderNotFound",
    "IngestError",
    "InvalidDateValues",
    "NoTransactionsExtracted",
    "RemoteExtractionFailure",
    "RowNormalizationError",
    "UnsupportedFileType",
]
