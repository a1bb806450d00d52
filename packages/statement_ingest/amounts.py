"""Amount normalization: currency symbols, separators, signs.

Two entry points share one cleaning routine:

- :func:`normalize_amount` is strict. It raises :class:`AmountParseError` on
  anything that is not a number once symbols and separators are removed, and
  returns the magnitude plus a ``credit``/``debit`` classification.
- :func:`parse_magnitude` is lenient and is used by the local tabular parser
  for debit/credit columns, where a blank or ``-`` cell simply means "nothing
  in this column". Unparseable cells become ``0``.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal, NamedTuple

from .errors import AmountParseError

type TransactionType = Literal["credit", "debit"]

CURRENCY_SYMBOLS: str = "$€£¥₹"

# Thousands separators and any Unicode whitespace (NBSP included)
_NOISE_RE = re.compile(r"[,\s]")
_CENT = Decimal("0.01")


class AmountResult(NamedTuple):
    amount: Decimal
    type: TransactionType


def _clean_decimal(raw: str | int | float | Decimal) -> Decimal:
    if isinstance(raw, bool):
        raise AmountParseError(f"Cannot parse amount: {raw!r}")
    if isinstance(raw, (Decimal, int, float)):
        d = raw if isinstance(raw, Decimal) else Decimal(str(raw))
        if not d.is_finite():
            raise AmountParseError(f"Cannot parse amount: {raw!r}")
        return d

    s = _NOISE_RE.sub("", str(raw))
    negative = False

    # Strip leading sign, currency symbol, and surrounding parentheses until
    # stable so "-$1,234.56", "$(12.00)" and "(₹500)" all resolve.
    while s:
        changed = False
        if s[0] == "+":
            s = s[1:]
            changed = True
        elif s[0] == "-":
            negative = True
            s = s[1:]
            changed = True
        if s and s[0] in CURRENCY_SYMBOLS:
            s = s[1:]
            changed = True
        if s and s[-1] in CURRENCY_SYMBOLS:
            s = s[:-1]
            changed = True
        if len(s) >= 2 and s[0] == "(" and s[-1] == ")":
            negative = True
            s = s[1:-1]
            changed = True
        if not changed:
            break

    if not s:
        raise AmountParseError(f"Cannot parse amount: {raw!r}")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise AmountParseError(f"Cannot parse amount: {raw!r}") from exc
    if not d.is_finite():
        raise AmountParseError(f"Cannot parse amount: {raw!r}")
    return -d if negative else d


def normalize_amount(raw: str | int | float | Decimal) -> AmountResult:
    """Return ``(abs(value), "credit" if value >= 0 else "debit")``.

    Zero is a credit here; dropping zero-valued rows is the local parser's
    decision, not this function's.
    """

    value = _clean_decimal(raw)
    return AmountResult(amount=abs(value), type="credit" if value >= 0 else "debit")


def parse_magnitude(raw: str | None) -> Decimal:
    """Return the absolute value of ``raw`` or ``0`` when it cannot be parsed."""

    if raw is None:
        return Decimal(0)
    try:
        return abs(_clean_decimal(raw))
    except AmountParseError:
        return Decimal(0)


def parse_signed(raw: str | None) -> Decimal:
    """Return the signed value of ``raw`` or ``0`` when it cannot be parsed."""

    if raw is None:
        return Decimal(0)
    try:
        return _clean_decimal(raw)
    except AmountParseError:
        return Decimal(0)


def format_amount(d: Decimal) -> str:
    """Exactly two decimals, ASCII dot, leading minus for negatives."""

    return f"{d.quantize(_CENT, rounding=ROUND_HALF_UP):.2f}"


__all__ = [
    "CURRENCY_SYMBOLS",
    "AmountResult",
    "TransactionType",
    "format_amount",
    "normalize_amount",
    "parse_magnitude",
    "parse_signed",
]
