"""Role-scoped filtering, search, sorting, duplicate detection, and reminders."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Tuple

from .dnc import DncList
from .models import STAGES, Record, User
from .normalize import combine_date_time, is_overdue, is_today, normalize_phone, parse_iso_date

ALL = "All"
UNASSIGNED = "unassigned"

SORT_CED = "ced"
SORT_NEXT_CALL = "nextcall"
SORT_KEYS = (SORT_CED, SORT_NEXT_CALL)
ASCENDING = "asc"
DESCENDING = "desc"

_SEARCH_FIELDS = ("company", "contact", "phone", "email", "supplier", "mpan_core", "mprn")


@dataclass(slots=True)
class ViewState:
    """Filter and sort selections driving the visible list."""

    query: str = ""
    stage_filter: str = ALL
    owner_filter: str = ALL
    sort_key: str = SORT_NEXT_CALL
    sort_dir: str = ASCENDING
    hide_dnc: bool = True

    def toggle_sort(self, key: str) -> "ViewState":
        """Flip direction on the active key; a new key starts ascending."""

        if key not in SORT_KEYS:
            raise ValueError(f"Unknown sort key '{key}'. Expected one of: {', '.join(SORT_KEYS)}")
        if key == self.sort_key:
            self.sort_dir = DESCENDING if self.sort_dir == ASCENDING else ASCENDING
        else:
            self.sort_key = key
            self.sort_dir = ASCENDING
        return self


def owned_scope(user: User, record: Record, owner_filter: str = ALL) -> bool:
    """Return whether ``record`` falls inside ``user``'s ownership scope."""

    if not user.is_admin:
        return record.owner_id is not None and record.owner_id == user.id
    if owner_filter == ALL:
        return True
    if owner_filter == UNASSIGNED:
        return record.owner_id is None
    return record.owner_id == owner_filter


def matches_search(record: Record, query: str) -> bool:
    needle = (query or "").strip().lower()
    if not needle:
        return True
    haystack = " ".join(getattr(record, name) or "" for name in _SEARCH_FIELDS).lower()
    return needle in haystack


def matches_stage(record: Record, stage_filter: str) -> bool:
    return stage_filter == ALL or record.stage == stage_filter


def _suppressed(record: Record, dnc: DncList, hide_dnc: bool) -> bool:
    return hide_dnc and dnc.contains(record.phone)


def visible_records(
    user: Optional[User],
    records: Iterable[Record],
    dnc: DncList,
    view: Optional[ViewState] = None,
) -> List[Record]:
    """Apply ownership, DNC, search and stage filters, then sort."""

    if user is None:
        return []
    view = view or ViewState()
    if view.stage_filter != ALL and view.stage_filter not in STAGES:
        raise ValueError(f"Unknown stage filter '{view.stage_filter}'")

    selected = [
        record
        for record in records
        if owned_scope(user, record, view.owner_filter)
        and not _suppressed(record, dnc, view.hide_dnc)
        and matches_search(record, view.query)
        and matches_stage(record, view.stage_filter)
    ]
    return sort_records(selected, view.sort_key, view.sort_dir)


def _ced_key(record: Record) -> Optional[date]:
    return parse_iso_date(record.ced)


def _next_call_key(record: Record) -> Optional[datetime]:
    return combine_date_time(record.next_call_date, record.next_call_time)


def sort_records(records: Iterable[Record], key: str = SORT_NEXT_CALL, direction: str = ASCENDING) -> List[Record]:
    """Sort by CED or next call; records without a value stay last in both directions."""

    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{key}'")
    extract: Callable[[Record], object] = _ced_key if key == SORT_CED else _next_call_key
    items = list(records)
    dated = [(extract(record), record) for record in items]
    present = [pair for pair in dated if pair[0] is not None]
    missing = [record for value, record in dated if value is None]
    present.sort(key=lambda pair: pair[0], reverse=direction == DESCENDING)
    return [record for _, record in present] + missing


def duplicate_phones(records: Iterable[Record]) -> frozenset[str]:
    """Normalised phones that appear on two or more records, ignoring every filter."""

    counts = Counter(normalize_phone(record.phone) for record in records)
    return frozenset(phone for phone, count in counts.items() if phone and count > 1)


def due_reminders(
    user: Optional[User],
    records: Iterable[Record],
    dnc: DncList,
    *,
    owner_filter: str = ALL,
    hide_dnc: bool = True,
    now: Optional[datetime] = None,
) -> List[Record]:
    """Records whose next call is today or already past, earliest first.

    Search and stage filters do not apply; ownership and DNC rules do.
    """

    if user is None:
        return []
    moment = now or datetime.now()
    due: List[Tuple[datetime, Record]] = []
    for record in records:
        if not owned_scope(user, record, owner_filter) or _suppressed(record, dnc, hide_dnc):
            continue
        if not record.next_call_date:
            continue
        if not (is_today(record.next_call_date, now=moment) or is_overdue(record.next_call_date, record.next_call_time, now=moment)):
            continue
        instant = combine_date_time(record.next_call_date, record.next_call_time)
        if instant is not None:
            due.append((instant, record))
    due.sort(key=lambda pair: pair[0])
    return [record for _, record in due]


def reminder_status(record: Record, *, now: Optional[datetime] = None) -> str:
    """Return ``"overdue"``, ``"due"`` or ``""`` for a record's next call."""

    moment = now or datetime.now()
    if is_overdue(record.next_call_date, record.next_call_time, now=moment):
        return "overdue"
    if is_today(record.next_call_date, now=moment):
        return "due"
    return ""


__all__ = [
    "ALL",
    "ASCENDING",
    "DESCENDING",
    "SORT_CED",
    "SORT_KEYS",
    "SORT_NEXT_CALL",
    "UNASSIGNED",
    "ViewState",
    "due_reminders",
    "duplicate_phones",
    "matches_search",
    "matches_stage",
    "owned_scope",
    "reminder_status",
    "sort_records",
    "visible_records",
]
