"""Persistence backends and the repository that loads and commits CRM state."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .dnc import DncList
from .errors import CRMError
from .models import Record, Session, TrashItem, User

LOGGER = logging.getLogger(__name__)

RECORDS_KEY = "records"
TRASH_KEY = "trash"
DNC_KEY = "dncList"
USERS_KEY = "users"
SESSION_KEY = "session"
ALL_KEYS = (RECORDS_KEY, TRASH_KEY, DNC_KEY, USERS_KEY, SESSION_KEY)


class StorageError(CRMError, RuntimeError):
    """Raised when the persisted document cannot be read."""


class StorageBackend(Protocol):
    """Key-value store holding JSON-compatible values."""

    def read(self, key: str) -> Any:  # pragma: no cover - runtime protocol
        """Return the stored value or ``None`` when the key is absent."""

    def write_many(self, items: Mapping[str, Any]) -> None:  # pragma: no cover - runtime protocol
        """Persist every item in one step."""


class MemoryBackend:
    """Backend keeping JSON round-tripped copies in memory."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Dict[str, str] = {}
        if initial:
            self.write_many(initial)

    def read(self, key: str) -> Any:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def write_many(self, items: Mapping[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = json.dumps(value)


class JsonFileBackend:
    """Single JSON document on disk, rewritten atomically on every commit."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._cache: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._cache is not None:
            return self._cache
        if not self.path.exists():
            self._cache = {}
            return self._cache
        try:
            document = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise StorageError(f"Data file '{self.path}' is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise StorageError(f"Data file '{self.path}' must contain a JSON object")
        self._cache = document
        return self._cache

    def read(self, key: str) -> Any:
        return self._load().get(key)

    def write_many(self, items: Mapping[str, Any]) -> None:
        document = dict(self._load())
        document.update(items)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle, temp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                json.dump(document, stream, ensure_ascii=False, indent=2)
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        self._cache = document


@dataclass
class CRMState:
    """In-memory view of the five persisted stores."""

    records: List[Record] = field(default_factory=list)
    trash: List[TrashItem] = field(default_factory=list)
    dnc: DncList = field(default_factory=DncList)
    users: List[User] = field(default_factory=list)
    session: Session = field(default_factory=Session)


class CRMRepository:
    """Loads the persisted key space and commits selected keys together."""

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    def load(self) -> CRMState:
        state = CRMState(
            records=[Record.from_dict(item) for item in self._read_list(RECORDS_KEY)],
            trash=[TrashItem.from_dict(item) for item in self._read_list(TRASH_KEY)],
            dnc=DncList(str(item) for item in self._read_list(DNC_KEY)),
            users=[User.from_dict(item) for item in self._read_list(USERS_KEY)],
            session=Session.from_dict(self._backend.read(SESSION_KEY)),
        )
        LOGGER.debug(
            "Loaded %s records, %s trash items, %s DNC numbers, %s users",
            len(state.records),
            len(state.trash),
            len(state.dnc),
            len(state.users),
        )
        return state

    def commit(self, state: CRMState, *keys: str) -> None:
        """Write the named keys (all keys when none are given) in one backend call."""

        selected = keys or ALL_KEYS
        unknown = [key for key in selected if key not in ALL_KEYS]
        if unknown:
            raise ValueError(f"Unknown storage keys: {', '.join(unknown)}")
        self._backend.write_many({key: self._serialise(state, key) for key in selected})

    def _read_list(self, key: str) -> List[Any]:
        value = self._backend.read(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise StorageError(f"Stored value for '{key}' must be a list")
        return value

    @staticmethod
    def _serialise(state: CRMState, key: str) -> Any:
        if key == RECORDS_KEY:
            return [record.to_dict() for record in state.records]
        if key == TRASH_KEY:
            return [item.to_dict() for item in state.trash]
        if key == DNC_KEY:
            return state.dnc.to_list()
        if key == USERS_KEY:
            return [user.to_dict() for user in state.users]
        return state.session.to_dict()


__all__ = [
    "ALL_KEYS",
    "CRMRepository",
    "CRMState",
    "DNC_KEY",
    "JsonFileBackend",
    "MemoryBackend",
    "RECORDS_KEY",
    "SESSION_KEY",
    "StorageBackend",
    "StorageError",
    "TRASH_KEY",
    "USERS_KEY",
]
