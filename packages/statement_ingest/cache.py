"""On-disk cache of extractor output, one file per chunk.

Re-uploading the same statement (or re-running the CLI on it) should not pay
for the same remote calls twice. Each chunk's normalized CSV lines are stored
under a key derived from the model, the extraction instructions, and the exact
chunk payload, so any prompt or model change rolls the key.

Cache layout (relative to the configured cache root)::

    <cache_root>/<key>.json

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
Unreadable or mismatched files are treated as misses.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
import re
from pathlib import Path

from pydantic import ValidationError

from . import prompting
from .logging_setup import get_logger
from .models import ChunkCacheFile

# Bump only when the on-disk JSON shape changes.
SCHEMA_VERSION: int = 1

_KEY_RE = re.compile(r"^[a-f0-9]{64}$")

_logger = get_logger("statement_ingest.cache")


def compute_chunk_key(*, model: str, payload: str | bytes) -> str:
    """Return a sha256 hex key for ``payload`` under ``model`` + current instructions."""

    h = hashlib.sha256()
    header = json.dumps(
        {"model": model, "instructions": prompting.EXTRACTION_INSTRUCTIONS},
        sort_keys=True,
        separators=(",", ":"),
    )
    h.update(header.encode("utf-8"))
    h.update(b"\x00")
    h.update(payload.encode("utf-8") if isinstance(payload, str) else payload)
    return h.hexdigest()


def _validate_key(key: str) -> str:
    # Keys become path components; reject anything that is not a sha256 hexdigest.
    if not _KEY_RE.fullmatch(key):
        raise ValueError(
            "Invalid cache key: must be 64-char lowercase hex. Use compute_chunk_key()."
        )
    return key


class ChunkCache:
    """Read/write cached extractor output below ``root``."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root).expanduser().resolve()

    def _path(self, key: str) -> Path:
        key = _validate_key(key)
        return self.root / f"{key}.json"

    def read(self, key: str, *, model: str) -> list[str] | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            parsed = ChunkCacheFile.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError):
            _logger.debug("chunk_cache:read_failed path=%s", os.fspath(path), exc_info=True)
            return None
        if parsed.schema_version != SCHEMA_VERSION or parsed.key != key or parsed.model != model:
            return None
        return list(parsed.csv_lines)

    def write(self, key: str, *, model: str, csv_lines: list[str]) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        entry = ChunkCacheFile(
            schema_version=SCHEMA_VERSION, key=key, model=model, csv_lines=list(csv_lines)
        )
        try:
            tmp.write_text(entry.model_dump_json(), encoding="utf-8")
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise


__all__ = ["SCHEMA_VERSION", "ChunkCache", "compute_chunk_key"]
