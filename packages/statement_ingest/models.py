"""Data models for ``statement_ingest``.

- :class:`NormalizedTransaction` is the canonical ledger unit handed to the
  persistence layer. ``amount`` is always a non-negative magnitude; the sign
  lives exclusively in ``type``.
- :data:`RawTransaction` is the loose row shape accepted by the ledger
  builder (``date``, ``description``, ``amount`` plus optional ``type`` and
  ``category``), as produced by the local parser or by reading canonical CSV.
- The ``*Event`` models form the progress protocol emitted during one
  extraction session. Exactly one :class:`CompleteEvent` or
  :class:`ErrorEvent` terminates a session.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .amounts import TransactionType

CANONICAL_HEADER: str = "date,description,amount"

# ---------------------------------------------------------------------------
# Ledger rows
# ---------------------------------------------------------------------------

type RawTransaction = Mapping[str, Any]
"""A single unvalidated row with keys ``date``, ``description``, ``amount``
and optionally ``type`` and ``category``. Values are raw strings (or numbers)."""


@dataclass(frozen=True, slots=True)
class NormalizedTransaction:
    """A validated, typed ledger row.

    Attributes
    ----------
    date:
        ISO calendar date, ``YYYY-MM-DD``.
    description:
        Non-empty description; defaults to ``"Transaction {n}"`` upstream.
    amount:
        Non-negative magnitude.
    currency:
        Upper-cased 3-letter code.
    type:
        ``"credit"`` or ``"debit"``.
    category:
        Free-form category label or ``None``.
    """

    date: str
    description: str
    amount: Decimal
    currency: str
    type: TransactionType
    category: str | None = None

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "description": self.description,
            "amount": float(self.amount),
            "currency": self.currency,
            "type": self.type,
            "category": self.category,
        }


# ---------------------------------------------------------------------------
# Progress protocol
# ---------------------------------------------------------------------------


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["progress"] = "progress"
    stage: str
    message: str
    percent: int = Field(ge=0, le=100)
    completedChunks: int | None = None  # noqa: N815 - wire field name
    totalChunks: int | None = None  # noqa: N815
    transactionsFound: int | None = None  # noqa: N815


class CompleteEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["complete"] = "complete"
    csvText: str  # noqa: N815
    rowCount: int  # noqa: N815
    message: str


class ErrorEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["error"] = "error"
    message: str


type ExtractionEvent = ProgressEvent | CompleteEvent | ErrorEvent


def encode_sse(event: ExtractionEvent) -> str:
    """Render one event as a server-sent-events record (``data: {...}\\n\\n``).

    Optional progress fields that are unset are omitted from the JSON.
    """

    return f"data: {event.model_dump_json(exclude_none=True)}\n\n"


# ---------------------------------------------------------------------------
# On-disk chunk cache
# ---------------------------------------------------------------------------


class ChunkCacheFile(BaseModel):
    """Schema of a single cached extractor response for one chunk."""

    model_config = ConfigDict(strict=True, extra="forbid")

    schema_version: int
    key: str
    model: str
    csv_lines: list[str]


__all__ = [
    "CANONICAL_HEADER",
    "ChunkCacheFile",
    "CompleteEvent",
    "ErrorEvent",
    "ExtractionEvent",
    "NormalizedTransaction",
    "ProgressEvent",
    "RawTransaction",
    "encode_sse",
]
