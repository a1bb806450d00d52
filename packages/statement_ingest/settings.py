"""Environment-driven configuration.

Every tunable has a default and an optional ``STATEMENT_INGEST_*`` override.
Invalid numeric overrides are ignored with a warning rather than failing the
request. ``OPENAI_API_KEY`` is read by the OpenAI SDK directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path

from .logging_setup import get_logger

_ENV_PREFIX = "STATEMENT_INGEST_"

_logger = get_logger("statement_ingest.settings")


@dataclass(frozen=True, slots=True)
class IngestSettings:
    """Tunables for local parsing and remote extraction.

    Attributes
    ----------
    model:
        Responses API model used for extraction.
    single_request_max_lines:
        Inputs with at most this many non-empty lines go out as one request.
    context_lines:
        Leading lines re-sent with every chunk as column context.
    chunk_lines:
        Data lines per chunk.
    batch_concurrency:
        Chunks in flight at once; batches run strictly one after another.
    max_chunks:
        Upper bound on chunk requests per extraction; extra chunks are dropped.
    deadline_seconds:
        Wall-clock budget for a chunked extraction, checked between batches.
    request_timeout_seconds:
        Per-request timeout handed to the SDK client.
    max_attempts:
        Attempts per chunk for retryable failures (429/5xx/connection).
    header_scan_rows:
        Rows scanned by the header resolver.
    cache_dir:
        When set, extractor output is cached per chunk under this directory.
    """

    model: str = "gpt-5"
    single_request_max_lines: int = 300
    context_lines: int = 15
    chunk_lines: int = 200
    batch_concurrency: int = 3
    max_chunks: int = 100
    deadline_seconds: float = 600.0
    request_timeout_seconds: float = 120.0
    max_attempts: int = 3
    header_scan_rows: int = 20
    cache_dir: Path | None = None

    @classmethod
    def from_env(cls, **overrides: object) -> IngestSettings:
        """Build settings from ``STATEMENT_INGEST_*`` env vars plus explicit overrides.

        Explicit keyword ``overrides`` win over the environment; ``None``
        values in ``overrides`` are ignored.
        """

        values: dict[str, object] = {}
        for f in fields(cls):
            raw = os.getenv(_ENV_PREFIX + f.name.upper())
            if raw is None or not raw.strip():
                continue
            raw = raw.strip()
            if f.name == "model":
                values[f.name] = raw
            elif f.name == "cache_dir":
                values[f.name] = Path(raw).expanduser()
            else:
                caster = float if f.name.endswith("_seconds") else int
                try:
                    num = caster(raw)
                except ValueError:
                    _logger.warning("settings:invalid_env name=%s value=%r", f.name, raw)
                    continue
                if num <= 0:
                    _logger.warning("settings:invalid_env name=%s value=%r", f.name, raw)
                    continue
                values[f.name] = num

        for k, v in overrides.items():
            if v is not None:
                values[k] = v
        return cls(**values)  # type: ignore[arg-type]


__all__ = ["IngestSettings"]
