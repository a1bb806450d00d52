"""CLI for the ``statement_ingest`` package.

Typer-based console interface over :mod:`statement_ingest.pipeline`.
Environment variables (notably ``OPENAI_API_KEY`` and the
``STATEMENT_INGEST_*`` tunables) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs.

Commands:

- ``parse FILE`` prints the canonical ``date,description,amount`` CSV, or with
  ``--stream`` the progress events as server-sent-event records.
- ``ledger FILE`` prints one JSON object per normalized transaction.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo

from .errors import NoTransactionsExtracted, RowNormalizationError, UnsupportedFileType
from .extraction import ServiceContext
from .ledger import DEFAULT_CURRENCY
from .logging_setup import configure_logging
from .models import ErrorEvent, encode_sse
from .pipeline import ingest_csv, ingest_stream, ingest_to_ledger
from .settings import IngestSettings

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Convert bank statements (CSV, XLSX, XLS, PDF) into a canonical "
        "date,description,amount ledger. Loads OPENAI_API_KEY from a local .env."
    ),
)

# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults).
FILE_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Statement file (.csv, .xlsx, .xls or .pdf)",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)


def _read_bytes(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
    except PermissionError:
        print(f"Error: Permission denied: {path}", file=sys.stderr)
    return None


def _service_context(cache_dir: Path | None) -> ServiceContext:
    # The OpenAI client is only built if a file needs remote extraction.
    return ServiceContext.create(IngestSettings.from_env(cache_dir=cache_dir))


def _report_failure(e: Exception | None = None) -> None:
    # Without a key every remote extraction fails, so name the real cause.
    remote = e is None or isinstance(e, NoTransactionsExtracted)
    if remote and not os.getenv("OPENAI_API_KEY"):
        print("Error: OPENAI_API_KEY is not set in the environment.", file=sys.stderr)
    if e is not None:
        print(f"Error: {e}", file=sys.stderr)


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (falls back to STATEMENT_INGEST_LOG_LEVEL)."
    ),
) -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps already-set environment variables
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


@app.command("parse")
def parse_cmd(
    file: Annotated[Path, FILE_ARGUMENT],
    *,
    stream: bool = typer.Option(
        False, "--stream", help="Print progress events as server-sent-event records."
    ),
    cache_dir: Path | None = typer.Option(
        None, help="Cache extractor output per chunk under this directory."
    ),
) -> None:
    """Print the canonical CSV for FILE."""

    data = _read_bytes(file)
    if data is None:
        raise typer.Exit(1)
    ctx = _service_context(cache_dir)

    try:
        if stream:
            last = None
            for event in ingest_stream(ctx, file_name=file.name, data=data):
                sys.stdout.write(encode_sse(event))
                sys.stdout.flush()
                last = event
            if isinstance(last, ErrorEvent):
                _report_failure()
                raise typer.Exit(1)
            return
        csv_text = ingest_csv(ctx, file_name=file.name, data=data)
    except (UnsupportedFileType, NoTransactionsExtracted) as e:
        _report_failure(e)
        raise typer.Exit(1) from e
    print(csv_text)


@app.command("ledger")
def ledger_cmd(
    file: Annotated[Path, FILE_ARGUMENT],
    *,
    currency: str = typer.Option(DEFAULT_CURRENCY, help="Currency code for every row."),
    cache_dir: Path | None = typer.Option(
        None, help="Cache extractor output per chunk under this directory."
    ),
) -> None:
    """Print FILE's normalized transactions as JSON lines."""

    data = _read_bytes(file)
    if data is None:
        raise typer.Exit(1)
    ctx = _service_context(cache_dir)

    try:
        transactions = ingest_to_ledger(ctx, file_name=file.name, data=data, currency=currency)
    except (UnsupportedFileType, NoTransactionsExtracted, RowNormalizationError) as e:
        _report_failure(e)
        raise typer.Exit(1) from e
    for tx in transactions:
        print(json.dumps(tx.to_json_dict()))


if __name__ == "__main__":  # pragma: no cover
    app()
