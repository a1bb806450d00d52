"""Pytest configuration for test isolation.

Extraction can persist per-chunk extractor output under
``STATEMENT_INGEST_CACHE_DIR``. When tests share a cache root, later tests may
hit entries written by earlier ones and skip the stubbed OpenAI call paths,
which makes assertions about call counts and failure handling flaky.

To keep tests hermetic, the cache root is redirected to a unique temporary
directory for each test, and any other ``STATEMENT_INGEST_*`` tunables from the
developer's environment are cleared.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Force a per-test cache root and default tunables."""

    for name in list(os.environ):
        if name.startswith("STATEMENT_INGEST_"):
            monkeypatch.delenv(name, raising=False)

    cache_root = tmp_path / "cache"
    cache_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("STATEMENT_INGEST_CACHE_DIR", os.fspath(cache_root))
