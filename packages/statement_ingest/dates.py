"""Date normalization for heterogeneous bank-statement date cells.

Recognized shapes, tried in order (first match wins):

1. ``YYYY-MM-DD`` (also ``/`` or ``.`` separators, single-digit month/day, and a
   trailing time part). A value whose month is out of range but whose day
   would be a valid month is read as ``YYYY-DD-MM``.
2. ``a/b/Y``, ``a-b-Y``, ``a.b.Y`` with a 2- or 4-digit year. Day/month order
   is resolved by :func:`resolve_day_month`.
3. ``D-Mon-Y`` / ``D Mon Y`` with a month name or abbreviation (matched on the
   first three letters, case-insensitive).
4. Anything else is handed to :func:`dateutil.parser.parse`. Results that do not
   pin down year, month and day (``"Jan 2025"``, ``"7"``) are rejected.

Ambiguous numeric dates (both parts <= 12) are read day-first. This is the one
policy used everywhere in the package; there is no month-first code path.
Year-first values are never read day-first.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from dateutil import parser as date_parser

from .errors import DateParseError, InvalidDateValues

_YEAR_FIRST_RE = re.compile(r"^(\d{4})([/.-])(\d{1,2})\2(\d{1,2})(?:[ T].*)?$")
_LEADING_YEAR_RE = re.compile(r"^\d{4}\b")
_NUMERIC_RE = re.compile(r"^(\d{1,2})([/.-])(\d{1,2})\2(\d{2}|\d{4})$")
_MONTH_NAME_RE = re.compile(r"^(\d{1,2})[\s-]([A-Za-z]{3,9})[\s-](\d{2}|\d{4})$")

_FALLBACK_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))

_MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}


def expand_year(raw: str) -> int:
    """Expand a 2-digit year: ``> 50`` -> 19XX, otherwise 20XX."""

    y = int(raw)
    if len(raw) == 2:
        return 1900 + y if y > 50 else 2000 + y
    return y


def resolve_day_month(a: int, b: int) -> tuple[int, int]:
    """Return ``(day, month)`` for an ambiguous ``a/b`` pair.

    - ``a > 12`` and ``b <= 12``: day-first.
    - ``b > 12`` and ``a <= 12``: month-first.
    - otherwise: day-first (also covers the invalid ``both > 12`` case, which
      the caller rejects during validation).
    """

    if b > 12 and a <= 12:
        return b, a
    return a, b


def _format(year: int, month: int, day: int, raw: str) -> str:
    if not (1 <= month <= 12 and 1 <= day <= 31):
        raise InvalidDateValues(f"Invalid date values: {raw!r}")
    return f"{year:04d}-{month:02d}-{day:02d}"


def normalize_date(raw: str) -> str:
    """Return ``raw`` as a canonical ``YYYY-MM-DD`` string.

    Raises :class:`DateParseError` when no shape matches and the fallback
    parser fails, or :class:`InvalidDateValues` when a numeric shape matched
    but its day/month are out of range.
    """

    if raw is None:
        raise DateParseError("Cannot parse date: None")
    s = str(raw).strip()
    if not s:
        raise DateParseError("Cannot parse date: empty value")

    m = _YEAR_FIRST_RE.match(s)
    if m:
        year, month, day = int(m.group(1)), int(m.group(3)), int(m.group(4))
        if not 1 <= month <= 12 and 1 <= day <= 12:
            month, day = day, month
        return _format(year, month, day, s)

    m = _NUMERIC_RE.match(s)
    if m:
        day, month = resolve_day_month(int(m.group(1)), int(m.group(3)))
        return _format(expand_year(m.group(4)), month, day, s)

    m = _MONTH_NAME_RE.match(s)
    if m:
        month = _MONTHS.get(m.group(2)[:3].lower())
        if month is not None:
            return _format(expand_year(m.group(3)), month, int(m.group(1)), s)

    # Parse against two different defaults; any field dateutil had to fill in
    # shows up as a difference.
    yearfirst = bool(_LEADING_YEAR_RE.match(s))
    try:
        parsed = [
            date_parser.parse(s, dayfirst=not yearfirst, yearfirst=yearfirst, default=d)
            for d in _FALLBACK_DEFAULTS
        ]
    except (ValueError, OverflowError) as exc:
        raise DateParseError(f"Cannot parse date: {raw!r}") from exc
    first, second = (date(p.year, p.month, p.day) for p in parsed)
    if first != second:
        raise DateParseError(f"Incomplete date: {raw!r}")
    return first.isoformat()


__all__ = ["expand_year", "normalize_date", "resolve_day_month"]
