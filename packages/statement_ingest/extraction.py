"""Remote extraction fallback.

Public API:
    - :class:`ServiceContext`
    - :func:`parse_extractor_output`
    - :func:`plan_chunks`
    - :func:`extract_text_stream`
    - :func:`extract_document_stream`
    - :func:`collect_csv`

Inputs with at most ``single_request_max_lines`` non-empty lines go out as one
request. Larger inputs are split into a shared header context plus fixed-size
chunks, and the chunks run in sequential batches of ``batch_concurrency``
concurrent requests. A failed chunk contributes zero rows; it never aborts its
batch or the extraction. Chunk output is merged in submission order once each
batch has settled.

Both stream functions are generators of progress events terminated by exactly
one :class:`~statement_ingest.models.CompleteEvent` or
:class:`~statement_ingest.models.ErrorEvent`. No side effects occur at import
time (no client creation, no environment reads).
"""

from __future__ import annotations

import math
import random
import re
import threading
import time
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from openai import APIConnectionError, OpenAI

from . import prompting
from .cache import ChunkCache, compute_chunk_key
from .errors import ExtractionFormatError, NoTransactionsExtracted, RemoteExtractionFailure
from .logging_setup import get_logger
from .models import (
    CANONICAL_HEADER,
    CompleteEvent,
    ErrorEvent,
    ExtractionEvent,
    ProgressEvent,
)
from .pmap import p_map, p_map_skip
from .settings import IngestSettings

NO_TRANSACTIONS_MESSAGE: str = "Could not extract transactions."

_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 2.0)
_JITTER_PCT: float = 0.20

# Wall clock for the extraction deadline.
_clock = time.monotonic

_FENCE_OPEN_RE = re.compile(r"^```[A-Za-z]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")

_logger = get_logger("statement_ingest.extraction")


# ---- Service context ---------------------------------------------------------


class _LazyOpenAI:
    """``OpenAI`` client built on first use.

    Local parses never reach the remote service, so a missing API key only
    fails the requests that actually need it.
    """

    def __init__(self, **kwargs: Any) -> None:
        self._kwargs = kwargs
        self._client: Any = None
        self._lock = threading.Lock()

    @property
    def responses(self) -> Any:
        with self._lock:
            if self._client is None:
                self._client = OpenAI(**self._kwargs)
        return self._client.responses


@dataclass(frozen=True, slots=True)
class ServiceContext:
    """Collaborators for one extraction session, passed explicitly.

    ``client`` only needs a ``responses.create(**kwargs)`` method, so tests can
    substitute a stub.
    """

    client: Any
    settings: IngestSettings = field(default_factory=IngestSettings)
    cache: ChunkCache | None = None

    @classmethod
    def create(cls, settings: IngestSettings | None = None) -> ServiceContext:
        settings = settings if settings is not None else IngestSettings.from_env()
        # SDK-level retries are disabled; chunk retries are bounded here.
        client = _LazyOpenAI(timeout=settings.request_timeout_seconds, max_retries=0)
        cache = ChunkCache(settings.cache_dir) if settings.cache_dir is not None else None
        return cls(client=client, settings=settings, cache=cache)


# ---- Output contract ---------------------------------------------------------


def _response_text(resp: Any) -> str:
    """Return the text of a Responses API result.

    Prefer ``resp.output_text``; fall back to ``resp.output[0].content[0].text``.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise ExtractionFormatError("Unexpected Responses API shape; unable to locate text output")
    return text


def parse_extractor_output(raw: str) -> str:
    """Normalize untrusted extractor text into canonical CSV.

    Strips a surrounding code fence and prepends ``date,description,amount``
    when the first line does not mention both ``date`` and ``amount``. Raises
    :class:`ExtractionFormatError` when nothing comma-separated remains.
    """

    text = (raw or "").replace("\r\n", "\n").strip()
    text = _FENCE_OPEN_RE.sub("", text)
    text = _FENCE_CLOSE_RE.sub("", text).strip()
    if not text or "," not in text:
        raise ExtractionFormatError("Extractor output contained no CSV rows")

    first = text.split("\n", 1)[0].lower()
    if "date" not in first or "amount" not in first:
        text = f"{CANONICAL_HEADER}\n{text}"
    return text


def _data_lines(csv_text: str) -> list[str]:
    """Return the rows after the header, dropping blanks and repeated headers."""

    out: list[str] = []
    for line in csv_text.split("\n")[1:]:
        stripped = line.strip()
        if not stripped or stripped.lower().startswith("date,"):
            continue
        out.append(stripped)
    return out


def _failure_message(e: RemoteExtractionFailure) -> str:
    # Output without CSV rows means nothing was extracted; keep transport errors verbatim.
    if isinstance(e.__cause__, ExtractionFormatError):
        return NO_TRANSACTIONS_MESSAGE
    return str(e)


def _terminal(data_lines: Sequence[str]) -> ExtractionEvent:
    if not data_lines:
        return ErrorEvent(message=NO_TRANSACTIONS_MESSAGE)
    csv_text = "\n".join([CANONICAL_HEADER, *data_lines])
    return CompleteEvent(
        csvText=csv_text,
        rowCount=len(data_lines),
        message=f"Extracted {len(data_lines)} transactions",
    )


# ---- Chunk planning ----------------------------------------------------------


def split_lines(content: str) -> list[str]:
    """Split ``content`` into its non-empty lines."""

    return [ln for ln in content.splitlines() if ln.strip()]


@dataclass(frozen=True, slots=True)
class ChunkPlan:
    context: list[str]
    chunks: list[list[str]]
    dropped: int = 0

    def chunk_text(self, index: int) -> str:
        return "\n".join([*self.context, *self.chunks[index]])


def plan_chunks(lines: Sequence[str], settings: IngestSettings) -> ChunkPlan:
    """Partition ``lines`` into shared context plus ``chunk_lines``-sized chunks.

    Yields ``ceil((N - context_lines) / chunk_lines)`` chunks, capped at
    ``max_chunks``; the number of chunks cut by the cap is kept in ``dropped``.
    """

    context = list(lines[: settings.context_lines])
    body = lines[settings.context_lines :]
    size = settings.chunk_lines
    chunks = [list(body[i : i + size]) for i in range(0, len(body), size)]
    dropped = max(0, len(chunks) - settings.max_chunks)
    if dropped:
        _logger.warning(
            "extract:max_chunks_exceeded planned=%d limit=%d dropped=%d",
            len(chunks),
            settings.max_chunks,
            dropped,
        )
        chunks = chunks[: settings.max_chunks]
    return ChunkPlan(context=context, chunks=chunks, dropped=dropped)


def _percent(completed: int, total: int) -> int:
    return round(10 + (completed / total) * 80) if total else 10


# ---- Remote calls ------------------------------------------------------------


def _is_retryable(exc: BaseException) -> bool:
    """Return True for HTTP 429/5xx and connection/timeout errors only."""

    if isinstance(exc, APIConnectionError):
        return True
    sc = getattr(exc, "status_code", None)
    return isinstance(sc, int) and (sc == 429 or 500 <= sc < 600)


def _sleep_backoff(attempt_no: int) -> None:
    if attempt_no - 1 < len(_BACKOFF_SCHEDULE_SEC):
        base = _BACKOFF_SCHEDULE_SEC[attempt_no - 1]
    else:
        base = _BACKOFF_SCHEDULE_SEC[-1]
    jitter = base * _JITTER_PCT
    delay = base + random.uniform(-jitter, jitter)
    time.sleep(max(0.0, delay))


def _request_text(ctx: ServiceContext, payload: str | list[dict[str, Any]], *, label: str) -> str:
    attempt = 1
    while True:
        t0 = time.perf_counter()
        try:
            resp = ctx.client.responses.create(
                model=ctx.settings.model,
                instructions=prompting.EXTRACTION_INSTRUCTIONS,
                input=payload,
            )
            return _response_text(resp)
        except Exception as e:  # noqa: BLE001
            if attempt >= ctx.settings.max_attempts or not _is_retryable(e):
                raise
            dt_ms = (time.perf_counter() - t0) * 1000.0
            _logger.warning(
                "extract:retry target=%s latency_ms=%.2f error=%s attempt=%d",
                label,
                dt_ms,
                e.__class__.__name__,
                attempt,
            )
            _sleep_backoff(attempt)
            attempt += 1


def _extract(
    ctx: ServiceContext,
    payload: str | list[dict[str, Any]],
    *,
    cache_payload: str | bytes,
    chunk_index: int,
    label: str,
) -> list[str]:
    """Run one extraction request and return its canonical data lines.

    Any failure, after bounded retries, is raised as
    :class:`RemoteExtractionFailure`.
    """

    key: str | None = None
    if ctx.cache is not None:
        key = compute_chunk_key(model=ctx.settings.model, payload=cache_payload)
        cached = ctx.cache.read(key, model=ctx.settings.model)
        if cached is not None:
            _logger.info("extract:cache_hit target=%s rows=%d", label, len(cached))
            return cached

    _logger.info("extract:request target=%s", label)
    t0 = time.perf_counter()
    try:
        lines = _data_lines(parse_extractor_output(_request_text(ctx, payload, label=label)))
    except Exception as e:  # noqa: BLE001
        dt_ms = (time.perf_counter() - t0) * 1000.0
        _logger.error(
            "extract:failed target=%s latency_ms=%.2f error=%s",
            label,
            dt_ms,
            e.__class__.__name__,
        )
        raise RemoteExtractionFailure(
            f"Extraction failed for {label}: {e}", chunk_index=chunk_index
        ) from e

    if key is not None and ctx.cache is not None:
        ctx.cache.write(key, model=ctx.settings.model, csv_lines=lines)
    _logger.info(
        "extract:done target=%s rows=%d latency_ms=%.2f",
        label,
        len(lines),
        (time.perf_counter() - t0) * 1000.0,
    )
    return lines


# ---- Streams -----------------------------------------------------------------


def extract_text_stream(
    content: str, ctx: ServiceContext, *, file_name: str = "statement"
) -> Iterator[ExtractionEvent]:
    """Extract transactions from plain/CSV text, yielding progress events."""

    settings = ctx.settings
    lines = split_lines(content)
    if not lines:
        yield ErrorEvent(message=NO_TRANSACTIONS_MESSAGE)
        return

    if len(lines) <= settings.single_request_max_lines:
        yield ProgressEvent(stage="analyzing", message="Analyzing statement...", percent=20)
        text = "\n".join(lines)
        try:
            rows = _extract(
                ctx,
                prompting.build_text_input(text, file_name=file_name),
                cache_payload=text,
                chunk_index=0,
                label=file_name,
            )
        except RemoteExtractionFailure as e:
            yield ErrorEvent(message=_failure_message(e))
            return
        yield _terminal(rows)
        return

    plan = plan_chunks(lines, settings)
    total = len(plan.chunks)
    size = settings.batch_concurrency
    n_batches = math.ceil(total / size)
    yield ProgressEvent(
        stage="chunking",
        message=f"Large statement detected ({len(lines)} lines). Splitting into {total} chunks...",
        percent=5,
        completedChunks=0,
        totalChunks=total,
    )

    def run_chunk(index: int) -> list[str] | object:
        text = plan.chunk_text(index)
        try:
            return _extract(
                ctx,
                prompting.build_text_input(
                    text, file_name=file_name, chunk_number=index + 1, total_chunks=total
                ),
                cache_payload=text,
                chunk_index=index,
                label=f"{file_name}#{index + 1}/{total}",
            )
        except RemoteExtractionFailure:
            return p_map_skip

    accumulated: list[str] = []
    completed = 0
    started = _clock()
    for b, base in enumerate(range(0, total, size), start=1):
        if _clock() - started > settings.deadline_seconds:
            _logger.warning(
                "extract:deadline_exceeded batch=%d/%d completed_chunks=%d/%d",
                b,
                n_batches,
                completed,
                total,
            )
            break
        indices = list(range(base, min(base + size, total)))
        yield ProgressEvent(
            stage="extracting",
            message=f"Processing batch {b} of {n_batches}...",
            percent=_percent(completed, total),
            completedChunks=completed,
            totalChunks=total,
            transactionsFound=len(accumulated),
        )
        for rows in p_map(indices, run_chunk, concurrency=size):
            accumulated.extend(rows)  # type: ignore[arg-type]
        completed += len(indices)
        yield ProgressEvent(
            stage="extracting",
            message=f"Batch {b} done: {len(accumulated)} transactions found",
            percent=_percent(completed, total),
            completedChunks=completed,
            totalChunks=total,
            transactionsFound=len(accumulated),
        )

    _logger.info(
        "extract:chunks_done file=%s chunks=%d completed=%d rows=%d",
        file_name,
        total,
        completed,
        len(accumulated),
    )
    yield _terminal(accumulated)


def extract_document_stream(
    data: bytes, media_type: str, ctx: ServiceContext, *, file_name: str = "statement"
) -> Iterator[ExtractionEvent]:
    """Extract transactions from a binary document in a single request."""

    yield ProgressEvent(stage="analyzing", message="Analyzing document...", percent=20)
    try:
        rows = _extract(
            ctx,
            prompting.build_document_input(data, media_type=media_type, file_name=file_name),
            cache_payload=media_type.encode("utf-8") + b"\x00" + data,
            chunk_index=0,
            label=file_name,
        )
    except RemoteExtractionFailure as e:
        yield ErrorEvent(message=_failure_message(e))
        return
    yield _terminal(rows)


def collect_csv(events: Iterable[ExtractionEvent]) -> str:
    """Drain an event stream and return the canonical CSV of its ``complete`` event.

    Raises :class:`NoTransactionsExtracted` on an ``error`` event or when the
    stream ends without a terminal event.
    """

    for event in events:
        if isinstance(event, CompleteEvent):
            return event.csvText
        if isinstance(event, ErrorEvent):
            _logger.info("extract:no_transactions message=%s", event.message)
            raise NoTransactionsExtracted()
    raise NoTransactionsExtracted()


__all__ = [
    "NO_TRANSACTIONS_MESSAGE",
    "ChunkPlan",
    "ServiceContext",
    "collect_csv",
    "extract_document_stream",
    "extract_text_stream",
    "parse_extractor_output",
    "plan_chunks",
    "split_lines",
]
