"""Prompt construction for remote statement extraction.

This module builds:
- The fixed extraction instructions (system prompt) describing the canonical
  ``date,description,amount`` CSV contract.
- The user input for a text payload (whole statement or one chunk with its
  shared header context).
- The user input for a binary document sent inline as base64 (PDF, legacy
  spreadsheets) using the Responses API ``input_file`` content part.
"""

from __future__ import annotations

import base64
from typing import Any

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MEDIA_TYPE = "application/vnd.ms-excel"

EXTRACTION_INSTRUCTIONS: str = (
    "You extract transactions from bank statements. Output ALL transactions as CSV.\n"
    "Headers (first line, exactly): date,description,amount\n"
    "- date: YYYY-MM-DD\n"
    "- description: the transaction description/narration/particulars\n"
    "- amount: plain number without currency symbols; positive for credits/deposits, "
    "negative for debits/withdrawals\n"
    "- If there are separate debit and credit columns, combine them into the single "
    "signed amount\n"
    "- Skip opening/closing balances, totals, repeated headers, summary and empty rows\n"
    "- Wrap descriptions containing commas in double quotes and double any embedded "
    "double quotes\n"
    "Return ONLY the CSV. No markdown fences. No explanation."
)


def build_text_input(
    content: str,
    *,
    file_name: str,
    chunk_number: int | None = None,
    total_chunks: int | None = None,
) -> str:
    """Return user input for a plain-text statement or one chunk of it.

    ``chunk_number`` is 1-based; when given, the label tells the model it is
    looking at a fragment that starts with repeated header context.
    """

    label = f"Bank statement: {file_name}"
    if chunk_number is not None and total_chunks is not None:
        label += f" (chunk {chunk_number}/{total_chunks})"
    return f"{label}\n\n{content}"


def build_document_input(data: bytes, *, media_type: str, file_name: str) -> list[dict[str, Any]]:
    """Return Responses API input carrying ``data`` as an inline base64 file."""

    encoded = base64.b64encode(data).decode("ascii")
    return [
        {
            "role": "user",
            "content": [
                {
                    "type": "input_file",
                    "filename": file_name,
                    "file_data": f"data:{media_type};base64,{encoded}",
                },
                {
                    "type": "input_text",
                    "text": "Extract every transaction from the attached bank statement.",
                },
            ],
        }
    ]


__all__ = [
    "EXTRACTION_INSTRUCTIONS",
    "PDF_MEDIA_TYPE",
    "XLSX_MEDIA_TYPE",
    "XLS_MEDIA_TYPE",
    "build_document_input",
    "build_text_input",
]
