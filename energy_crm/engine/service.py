"""Capability-checked command and query layer over the CRM stores."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..config import CRMSettings
from ..errors import CommandOutcome, CSVFormatError, ImportSummary, PermissionDenied, RecordNotFoundError, ValidationError
from ..io import csv_template, parse_csv, records_to_csv
from ..models import AGENT, STAGES, Record, TrashItem, User
from ..query import ALL, ViewState, due_reminders, duplicate_phones, owned_scope, visible_records
from ..records import SNOOZE_HOUR, RecordStore, append_note, snooze
from ..storage import (
    DNC_KEY,
    RECORDS_KEY,
    SESSION_KEY,
    TRASH_KEY,
    USERS_KEY,
    CRMRepository,
    JsonFileBackend,
    MemoryBackend,
)
from ..users import UserStore

LOGGER = logging.getLogger(__name__)


class CRMEngine:
    """Single entry point for the presentation layer.

    Every command receives the acting user explicitly, checks the role, applies
    the change in memory and commits the touched stores in one backend write.
    Destructive commands return a :class:`CommandOutcome` asking for
    confirmation until they are re-invoked with ``confirm=True``.
    """

    def __init__(
        self,
        repository: CRMRepository,
        *,
        settings: Optional[CRMSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._repository = repository
        self.settings = settings or CRMSettings()
        self._clock = clock
        self._state = repository.load()
        self.users = UserStore(self._state.users, self._state.session, default_pin=self.settings.default_pin)
        self.store = RecordStore(self._state.records, self._state.trash, self._state.dnc)
        self.view = ViewState(hide_dnc=self.settings.hide_dnc)

    @classmethod
    def open(cls, path: str | Path, *, settings: Optional[CRMSettings] = None, **kwargs) -> "CRMEngine":
        return cls(CRMRepository(JsonFileBackend(path)), settings=settings, **kwargs)

    @classmethod
    def in_memory(cls, *, settings: Optional[CRMSettings] = None, **kwargs) -> "CRMEngine":
        return cls(CRMRepository(MemoryBackend()), settings=settings, **kwargs)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _commit(self, *keys: str) -> None:
        self._state.session = self.users.session
        self._repository.commit(self._state, *keys)

    # ------------------------------------------------------------------
    # Capability checks
    # ------------------------------------------------------------------
    def _require_active(self, actor: Optional[User]) -> User:
        if actor is None:
            raise PermissionDenied("Sign in first")
        current = self.users.find(actor.id)
        if current is None or not current.active:
            raise PermissionDenied("User is not active")
        return current

    def _require_admin(self, actor: Optional[User]) -> User:
        user = self._require_active(actor)
        if not user.is_admin:
            raise PermissionDenied("Only administrators can do this")
        return user

    def _resolve_owner(self, owner_id: Optional[str]) -> Optional[User]:
        if not owner_id:
            return None
        owner = self.users.find(owner_id)
        if owner is None or not owner.active:
            raise ValidationError(f"Owner '{owner_id}' is not an active user")
        return owner

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    @property
    def current_user(self) -> Optional[User]:
        user = self.users.current_user
        if user is not None and not user.active:
            return None
        return user

    @property
    def needs_bootstrap(self) -> bool:
        return self.users.needs_bootstrap

    def create_first_admin(self, name: str, email: str, pin: Optional[str] = None) -> User:
        admin = self.users.create_first_admin(name, email, pin)
        self._commit(USERS_KEY, SESSION_KEY)
        return admin

    def login(self, email: str, pin: object) -> User:
        user = self.users.login(email, pin)
        self._commit(SESSION_KEY)
        return user

    def logout(self) -> None:
        self.users.logout()
        self._commit(SESSION_KEY)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def visible(self, actor: Optional[User], view: Optional[ViewState] = None) -> List[Record]:
        if actor is None:
            return []
        user = self._require_active(actor)
        return visible_records(user, self.store.records, self.store.dnc, view or self.view)

    def reminders(self, actor: Optional[User], view: Optional[ViewState] = None) -> List[Record]:
        if actor is None:
            return []
        user = self._require_active(actor)
        view = view or self.view
        return due_reminders(
            user,
            self.store.records,
            self.store.dnc,
            owner_filter=view.owner_filter,
            hide_dnc=view.hide_dnc,
            now=self._clock(),
        )

    def duplicates(self) -> frozenset[str]:
        return duplicate_phones(self.store.records)

    def get_record(self, actor: User, record_id: str) -> Record:
        user = self._require_active(actor)
        record = self.store.get(record_id)
        if not owned_scope(user, record, ALL):
            raise RecordNotFoundError(f"Record '{record_id}' not found")
        return record

    def trash_items(self, actor: User) -> List[TrashItem]:
        self._require_admin(actor)
        return list(self.store.trash)

    def list_users(self, actor: User) -> List[User]:
        self._require_admin(actor)
        return list(self.users.users)

    def dnc_numbers(self, actor: User) -> List[str]:
        self._require_admin(actor)
        return self.store.dnc.to_list()

    # ------------------------------------------------------------------
    # Record commands
    # ------------------------------------------------------------------
    def create_record(self, actor: User) -> Record:
        user = self._require_active(actor)
        record = self.store.create(user.id)
        self._commit(RECORDS_KEY)
        return record

    def save_record(self, actor: User, record: Record, *, note: str = "", confirm: bool = False) -> CommandOutcome:
        """Upsert ``record``; a blank next-call date needs confirmation."""

        user = self._require_active(actor)
        self._check_can_write(user, record)
        if record.stage not in STAGES:
            raise ValidationError(f"Unknown stage '{record.stage}'")
        if not record.next_call_date and not confirm:
            return CommandOutcome.confirm_first(
                "save", "No call back date selected. Continue saving without scheduling?", affected=1
            )
        updated = append_note(record.copy(), note, moment=self._clock())
        self.store.upsert(updated)
        self._commit(RECORDS_KEY)
        return CommandOutcome.done("save", f"Saved {updated.display_name()}", affected=1, value=updated)

    def promote_stage(self, actor: User, record_id: str, stage: str, *, confirm: bool = False) -> CommandOutcome:
        user = self._require_active(actor)
        record = self.get_record(user, record_id)
        if stage not in STAGES:
            raise ValidationError(f"Unknown stage '{stage}'. Expected one of: {', '.join(STAGES)}")
        if not confirm:
            return CommandOutcome.confirm_first(
                "promote",
                f'Are you sure you want to promote this record from "{record.stage}" to "{stage}"?',
                affected=1,
            )
        updated = self.store.upsert(record.copy(stage=stage))
        self._commit(RECORDS_KEY)
        return CommandOutcome.done("promote", f"Moved to {stage}", affected=1, value=updated)

    def snooze_record(self, actor: User, record_id: str, minutes: int = SNOOZE_HOUR) -> Record:
        user = self._require_active(actor)
        record = self.get_record(user, record_id)
        updated = self.store.upsert(snooze(record.copy(), minutes, now=self._clock()))
        self._commit(RECORDS_KEY)
        return updated

    def delete_record(
        self,
        actor: User,
        record_id: str,
        *,
        reason: Optional[str] = None,
        add_to_dnc: bool = True,
        confirm: bool = False,
    ) -> CommandOutcome:
        self._require_admin(actor)
        record = self.store.get(record_id)
        reason = (reason or "").strip() or self.settings.default_delete_reason
        if not confirm:
            return CommandOutcome.confirm_first("delete", f"Move {record.display_name()} to the bin ({reason})?", affected=1)
        item = self.store.soft_delete(record_id, reason, add_to_dnc=add_to_dnc)
        self._commit(RECORDS_KEY, TRASH_KEY, DNC_KEY)
        return CommandOutcome.done("delete", f"Moved {record.display_name()} to the bin", affected=1, value=item)

    def restore_record(self, actor: User, record_id: str) -> Record:
        self._require_admin(actor)
        record = self.store.restore(record_id)
        self._commit(RECORDS_KEY, TRASH_KEY)
        return record

    def purge_record(self, actor: User, record_id: str, *, confirm: bool = False) -> CommandOutcome:
        self._require_admin(actor)
        item = self.store.get_trash_item(record_id)
        if not confirm:
            return CommandOutcome.confirm_first(
                "purge", "Delete this record permanently? This cannot be undone.", affected=1
            )
        self.store.purge(record_id)
        self._commit(TRASH_KEY)
        return CommandOutcome.done("purge", f"Permanently deleted {item.record.display_name()}", affected=1)

    def add_to_dnc(self, actor: User, phone: str) -> bool:
        self._require_admin(actor)
        added = self.store.dnc.add(phone)
        if added:
            self._commit(DNC_KEY)
        return added

    def bulk_reassign(
        self,
        actor: User,
        owner_id: Optional[str],
        view: Optional[ViewState] = None,
        *,
        confirm: bool = False,
    ) -> CommandOutcome:
        """Assign every currently visible record to ``owner_id`` (``None`` = unassigned)."""

        admin = self._require_admin(actor)
        owner = self._resolve_owner(owner_id)
        target_name = owner.name if owner else "No User"
        ids = [record.id for record in self.visible(admin, view)]
        if not ids:
            return CommandOutcome.skipped("reassign", "No visible rows to assign.")
        if not confirm:
            return CommandOutcome.confirm_first(
                "reassign", f"Assign {len(ids)} visible record(s) to {target_name}?", affected=len(ids)
            )
        changed = self.store.reassign(ids, owner.id if owner else None)
        self._commit(RECORDS_KEY)
        LOGGER.info("Reassigned %s record(s) to %s", changed, target_name)
        return CommandOutcome.done("reassign", f"Assigned {changed} record(s) to {target_name}", affected=changed)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------
    def import_csv(self, actor: User, text: str, owner_id: Optional[str] = None) -> ImportSummary:
        self._require_admin(actor)
        try:
            records = parse_csv(text)
        except CSVFormatError as exc:
            return self._unreadable_import(exc, owner_id)
        return self._merge_import(records, owner_id)

    def import_file(self, actor: User, path: str | Path, owner_id: Optional[str] = None) -> ImportSummary:
        from ..ingestion import load_records

        self._require_admin(actor)
        try:
            records = load_records(path)
        except CSVFormatError as exc:
            return self._unreadable_import(exc, owner_id)
        return self._merge_import(records, owner_id)

    @staticmethod
    def _unreadable_import(exc: CSVFormatError, owner_id: Optional[str]) -> ImportSummary:
        LOGGER.warning("Import skipped: %s", exc)
        return ImportSummary(count=0, owner_id=owner_id or None, message=f"Could not read CSV: {exc}")

    def _merge_import(self, records: Iterable[Record], owner_id: Optional[str]) -> ImportSummary:
        owner = self._resolve_owner(owner_id)
        incoming = list(records)
        if not incoming:
            return ImportSummary(count=0, owner_id=owner_id or None, message="No rows found in CSV.")
        for record in incoming:
            record.owner_id = owner.id if owner else None
        count = self.store.extend(incoming)
        self._commit(RECORDS_KEY)
        target = f" to {owner.name}" if owner else " (unassigned)"
        LOGGER.info("Imported %s record(s)%s", count, target)
        return ImportSummary(count=count, owner_id=owner.id if owner else None, message=f"Imported {count} record(s){target}.")

    def export_records(self, actor: User) -> List[Record]:
        self._require_admin(actor)
        return list(self.store.records)

    def export_csv(self, actor: User) -> str:
        return records_to_csv(self.export_records(actor))

    @staticmethod
    def csv_template() -> str:
        return csv_template()

    # ------------------------------------------------------------------
    # User administration
    # ------------------------------------------------------------------
    def add_user(self, actor: User, name: str, email: str, *, role: str = AGENT, pin: Optional[str] = None) -> User:
        self._require_admin(actor)
        user = self.users.add_user(name, email, role=role, pin=pin)
        self._commit(USERS_KEY)
        return user

    def edit_user(
        self,
        actor: User,
        user_id: str,
        *,
        name: str,
        email: str,
        role: str,
        pin: Optional[str] = None,
    ) -> User:
        self._require_admin(actor)
        user = self.users.edit_user(user_id, name=name, email=email, role=role, pin=pin)
        self._commit(USERS_KEY)
        return user

    def deactivate_user(
        self,
        actor: User,
        user_id: str,
        *,
        reassign_to_email: Optional[str] = None,
        confirm: bool = False,
    ) -> CommandOutcome:
        """Deactivate a user, optionally moving their records to another active user."""

        admin = self._require_admin(actor)
        user = self.users.get(user_id)
        if user.id == admin.id:
            raise ValidationError("You cannot deactivate your own account")
        if not user.active:
            return CommandOutcome.skipped("deactivate", f"{user.name} is already inactive")
        owned = self.store.owned_by(user.id)
        if not confirm:
            return CommandOutcome.confirm_first(
                "deactivate", f"Deactivate {user.name}? They won't be able to log in.", affected=len(owned)
            )

        moved = 0
        if reassign_to_email:
            target = self.users.find_active_by_email(reassign_to_email)
            if target is None or target.id == user.id:
                LOGGER.warning("Reassignment target %s is not another active user; records left in place", reassign_to_email)
            else:
                moved = self.store.reassign((record.id for record in owned), target.id)
        self.users.deactivate(user.id)
        self._commit(USERS_KEY, RECORDS_KEY)
        message = f"Deactivated {user.name}"
        if moved:
            message += f" and reassigned {moved} record(s)"
        return CommandOutcome.done("deactivate", message, affected=moved, value=user)

    # ------------------------------------------------------------------
    def _check_can_write(self, user: User, record: Record) -> None:
        if user.is_admin:
            return
        existing = self.store.find(record.id)
        if existing is not None and existing.owner_id != user.id:
            raise PermissionDenied("Agents can only edit their own records")
        if record.owner_id != user.id:
            raise PermissionDenied("Agents cannot assign records to other users")
