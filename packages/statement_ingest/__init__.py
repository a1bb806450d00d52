"""Public interface for the ``statement_ingest`` package.

This module exposes the package's pipeline entry points, normalizers and
public models/types as the stable import surface. There is no runtime logic
here, only symbol re-exports.
"""

from .amounts import AmountResult, normalize_amount
from .dates import normalize_date
from .errors import (
    AmountParseError,
    DateParseError,
    ExtractionFormatError,
    HeaderNotFound,
    IngestError,
    InvalidDateValues,
    NoTransactionsExtracted,
    RemoteExtractionFailure,
    RowNormalizationError,
    UnsupportedFileType,
)
from .extraction import (
    ServiceContext,
    collect_csv,
    extract_document_stream,
    extract_text_stream,
    parse_extractor_output,
)
from .headers import ColumnMap, KeywordSets, resolve_columns
from .ledger import build_ledger, build_ledger_from_csv
from .models import (
    CompleteEvent,
    ErrorEvent,
    ExtractionEvent,
    NormalizedTransaction,
    ProgressEvent,
    RawTransaction,
    encode_sse,
)
from .pipeline import detect_file_type, ingest_csv, ingest_stream, ingest_to_ledger
from .settings import IngestSettings
from .tabular import LocalParseResult, Parsed, Unavailable, try_local_parse

__all__ = [
    # Pipeline
    "detect_file_type",
    "ingest_csv",
    "ingest_stream",
    "ingest_to_ledger",
    # Stages
    "normalize_date",
    "normalize_amount",
    "resolve_columns",
    "try_local_parse",
    "extract_text_stream",
    "extract_document_stream",
    "parse_extractor_output",
    "collect_csv",
    "build_ledger",
    "build_ledger_from_csv",
    "encode_sse",
    # Types
    "AmountResult",
    "ColumnMap",
    "KeywordSets",
    "LocalParseResult",
    "Parsed",
    "Unavailable",
    "ServiceContext",
    "IngestSettings",
    "NormalizedTransaction",
    "RawTransaction",
    "ExtractionEvent",
    "ProgressEvent",
    "CompleteEvent",
    "ErrorEvent",
    # Errors
    "IngestError",
    "DateParseError",
    "InvalidDateValues",
    "AmountParseError",
    "HeaderNotFound",
    "RemoteExtractionFailure",
    "ExtractionFormatError",
    "NoTransactionsExtracted",
    "UnsupportedFileType",
    "RowNormalizationError",
]
