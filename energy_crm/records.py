"""Record store: creation, upsert, soft delete to trash, restore, and purge."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .dnc import DncList
from .errors import RecordNotFoundError, ValidationError
from .models import STAGES, Record, TrashItem, now_iso
from .normalize import combine_date_time, normalize_contract_end_date, normalize_phone, note_stamp

LOGGER = logging.getLogger(__name__)

SNOOZE_HOUR = 60
SNOOZE_DAY = 24 * 60


class RecordStore:
    """Live records plus the trash holding area.

    New records are placed first, matching the newest-first listing order.
    """

    def __init__(
        self,
        records: Optional[List[Record]] = None,
        trash: Optional[List[TrashItem]] = None,
        dnc: Optional[DncList] = None,
    ) -> None:
        self.records: List[Record] = records if records is not None else []
        self.trash: List[TrashItem] = trash if trash is not None else []
        self.dnc = dnc if dnc is not None else DncList()

    # ------------------------------------------------------------------
    # Live records
    # ------------------------------------------------------------------
    def get(self, record_id: str) -> Record:
        for record in self.records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"Record '{record_id}' not found")

    def find(self, record_id: str) -> Optional[Record]:
        return next((record for record in self.records if record.id == record_id), None)

    def create(self, owner_id: Optional[str]) -> Record:
        record = Record(owner_id=owner_id)
        self.records.insert(0, record)
        LOGGER.debug("Created record %s for owner %s", record.id, owner_id)
        return record

    def upsert(self, record: Record) -> Record:
        """Insert ``record`` if its id is new, otherwise replace the stored copy."""

        if record.stage not in STAGES:
            raise ValidationError(f"Unknown stage '{record.stage}'. Expected one of: {', '.join(STAGES)}")
        if any(item.id == record.id for item in self.trash):
            raise ValidationError(f"Record '{record.id}' is in the bin; restore it before editing")
        record.ced = normalize_contract_end_date(record.ced)
        for index, existing in enumerate(self.records):
            if existing.id == record.id:
                self.records[index] = record
                return record
        self.records.insert(0, record)
        return record

    def extend(self, records: Iterable[Record]) -> int:
        """Merge imported records ahead of the existing ones."""

        incoming = list(records)
        self.records[:0] = incoming
        return len(incoming)

    def owned_by(self, owner_id: Optional[str]) -> List[Record]:
        return [record for record in self.records if record.owner_id == owner_id]

    def reassign(self, record_ids: Iterable[str], owner_id: Optional[str]) -> int:
        wanted = set(record_ids)
        changed = 0
        for record in self.records:
            if record.id in wanted:
                record.owner_id = owner_id
                changed += 1
        return changed

    # ------------------------------------------------------------------
    # Trash lifecycle
    # ------------------------------------------------------------------
    def soft_delete(self, record_id: str, reason: str, *, add_to_dnc: bool = False) -> TrashItem:
        """Move a record to the trash, optionally suppressing its phone number."""

        record = self.get(record_id)
        item = TrashItem(record=record, deleted_at=now_iso(), delete_reason=reason)
        self.trash.insert(0, item)
        if add_to_dnc and normalize_phone(record.phone):
            if self.dnc.add(record.phone):
                LOGGER.info("Added %s to the DNC list", normalize_phone(record.phone))
        self.records[:] = [existing for existing in self.records if existing.id != record_id]
        LOGGER.info("Moved record %s to trash (%s)", record_id, reason)
        return item

    def get_trash_item(self, record_id: str) -> TrashItem:
        for item in self.trash:
            if item.id == record_id:
                return item
        raise RecordNotFoundError(f"Trash item '{record_id}' not found")

    def restore(self, record_id: str) -> Record:
        """Reinstate a trashed record with its original id and fields."""

        item = self.get_trash_item(record_id)
        if self.find(record_id) is not None:
            raise ValidationError(f"Record '{record_id}' is already live")
        self.trash[:] = [existing for existing in self.trash if existing.id != record_id]
        self.records.insert(0, item.record)
        LOGGER.info("Restored record %s from trash", record_id)
        return item.record

    def purge(self, record_id: str) -> TrashItem:
        item = self.get_trash_item(record_id)
        self.trash[:] = [existing for existing in self.trash if existing.id != record_id]
        LOGGER.info("Permanently deleted record %s", record_id)
        return item


def append_note(record: Record, note: str, *, moment: Optional[datetime] = None) -> Record:
    """Prepend a timestamped entry to the notes log (newest first)."""

    text = (note or "").strip()
    if not text:
        return record
    record.notes = f"{note_stamp(moment)}{text}\n{record.notes or ''}"
    return record


def snooze(record: Record, minutes: int = SNOOZE_HOUR, *, now: Optional[datetime] = None) -> Record:
    """Push the next call forward from its current instant, or from now."""

    base = combine_date_time(record.next_call_date, record.next_call_time) or (now or datetime.now())
    moment = base + timedelta(minutes=minutes)
    record.next_call_date = moment.strftime("%Y-%m-%d")
    record.next_call_time = moment.strftime("%H:%M")
    return record


__all__ = ["RecordStore", "SNOOZE_DAY", "SNOOZE_HOUR", "append_note", "snooze"]
