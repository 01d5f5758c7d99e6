"""Normalisation helpers for phones, contract end dates, and call times."""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional

_NON_DIGITS = re.compile(r"\D")
_DAY_FIRST = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})$")
_YEAR_FIRST = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")


def normalize_phone(value: Optional[str]) -> str:
    """Strip every non-digit character; ``""`` and ``None`` map to ``""``."""

    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))


def normalize_contract_end_date(value: Optional[str]) -> str:
    """Return a contract end date as ``YYYY-MM-DD`` where the format is recognised.

    Day-first (``DD/MM/YYYY``, ``DD-MM-YYYY``, ``DD.MM.YYYY``) and year-first
    (``YYYY/MM/DD``, ``YYYY-MM-DD``) inputs are accepted, two digit years map to
    ``20yy``. Anything else is returned as given (trimmed, dots as slashes) so
    free-text values survive ingestion.
    """

    if not value:
        return ""
    text = str(value).strip().replace(".", "/")

    match = _DAY_FIRST.match(text)
    if match:
        day, month, year = match.groups()
        if len(year) == 2:
            year = str(2000 + int(year))
        return f"{year.zfill(4)}-{month.zfill(2)}-{day.zfill(2)}"

    match = _YEAR_FIRST.match(text)
    if match:
        year, month, day = match.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    return text


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse ``YYYY-MM-DD``; unparseable or blank values yield ``None``."""

    if not value:
        return None
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def combine_date_time(date_value: Optional[str], time_value: Optional[str] = None) -> Optional[datetime]:
    """Combine a call date and an optional ``HH:MM`` time into one instant.

    A missing time means midnight. A missing or unreadable date means there is
    no instant at all.
    """

    day = parse_iso_date(date_value)
    if day is None:
        return None
    hours, minutes = _parse_time(time_value)
    return datetime(day.year, day.month, day.day, hours, minutes)


def _parse_time(value: Optional[str]) -> tuple[int, int]:
    parts = (value or "00:00").split(":")
    try:
        hours = int(parts[0] or 0)
        minutes = int(parts[1] or 0) if len(parts) > 1 else 0
    except ValueError:
        return 0, 0
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return 0, 0
    return hours, minutes


def is_today(date_value: Optional[str], *, now: Optional[datetime] = None) -> bool:
    day = parse_iso_date(date_value)
    if day is None:
        return False
    return day == (now or datetime.now()).date()


def is_overdue(date_value: Optional[str], time_value: Optional[str] = None, *, now: Optional[datetime] = None) -> bool:
    instant = combine_date_time(date_value, time_value)
    if instant is None:
        return False
    return instant < (now or datetime.now())


def note_stamp(moment: Optional[datetime] = None) -> str:
    """Return the ``[YYYY-MM-DD HH:MM] `` prefix used by the notes log."""

    return (moment or datetime.now()).strftime("[%Y-%m-%d %H:%M] ")


__all__ = [
    "combine_date_time",
    "is_overdue",
    "is_today",
    "normalize_contract_end_date",
    "normalize_phone",
    "note_stamp",
    "parse_iso_date",
]
