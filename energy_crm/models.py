"""Data models shared by the record store, user store, and query engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple


# --- Closed value sets ---

STAGES: Tuple[str, ...] = ("Prospect", "Qualified", "LOA", "Contracted", "Customer")
DEFAULT_STAGE = STAGES[0]

METER_TYPES: Tuple[str, ...] = ("Electric", "Gas")
DEFAULT_METER_TYPE = METER_TYPES[0]

ADMIN = "admin"
AGENT = "agent"
ROLES: Tuple[str, ...] = (ADMIN, AGENT)

DEFAULT_PIN = "1234"

SUPPLIERS: Tuple[str, ...] = (
    "EDF",
    "E.ON Next",
    "Octopus",
    "British Gas",
    "SSE/OVO",
    "ScottishPower",
    "TotalEnergies",
    "Utilita",
    "Other",
)

# Column order of the CSV schema, paired with the Record attribute it maps to.
CSV_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("company", "company"),
    ("contact", "contact"),
    ("phone", "phone"),
    ("email", "email"),
    ("meterType", "meter_type"),
    ("mpanTop", "mpan_top"),
    ("mpanCore", "mpan_core"),
    ("mprn", "mprn"),
    ("supplier", "supplier"),
    ("unitRatePPKWh", "unit_rate_ppkwh"),
    ("standingChargePPD", "standing_charge_ppd"),
    ("ced", "ced"),
    ("annualUsageKWh", "annual_usage_kwh"),
    ("stage", "stage"),
    ("notes", "notes"),
    ("nextCallDate", "next_call_date"),
    ("nextCallTime", "next_call_time"),
    ("nextCallNotes", "next_call_notes"),
)
CSV_HEADERS: Tuple[str, ...] = tuple(header for header, _ in CSV_COLUMNS)

# Persisted (camelCase) key for every Record attribute.
_RECORD_KEYS: Dict[str, str] = {
    "id": "id",
    "owner_id": "ownerId",
    **{attribute: header for header, attribute in CSV_COLUMNS},
    "created_at": "createdAt",
}


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


# --- Records ---

@dataclass(slots=True)
class Record:
    """A lead/deal tracked through the sales pipeline."""

    id: str = field(default_factory=new_id)
    owner_id: Optional[str] = None
    company: str = ""
    contact: str = ""
    phone: str = ""
    email: str = ""
    meter_type: str = DEFAULT_METER_TYPE
    mpan_top: str = ""
    mpan_core: str = ""
    mprn: str = ""
    supplier: str = ""
    unit_rate_ppkwh: str = ""
    standing_charge_ppd: str = ""
    ced: str = ""
    annual_usage_kwh: str = ""
    stage: str = DEFAULT_STAGE
    notes: str = ""
    next_call_date: str = ""
    next_call_time: str = ""
    next_call_notes: str = ""
    created_at: str = field(default_factory=now_iso)

    def display_name(self) -> str:
        """Return a readable label for prompts and logs."""
        return self.company or self.contact or "(no company)"

    def schema_values(self) -> Dict[str, str]:
        """Return the CSV schema fields keyed by header name."""
        return {header: getattr(self, attribute) for header, attribute in CSV_COLUMNS}

    def copy(self, **changes: Any) -> "Record":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attribute) for attribute, key in _RECORD_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        values: Dict[str, Any] = {}
        for attribute, key in _RECORD_KEYS.items():
            if key not in data:
                continue
            value = data[key]
            if attribute == "owner_id":
                values[attribute] = value or None
            elif value is None:
                values[attribute] = ""
            else:
                values[attribute] = str(value)
        return cls(**values)


@dataclass(slots=True)
class TrashItem:
    """A soft-deleted record awaiting restore or permanent purge."""

    record: Record
    deleted_at: str = field(default_factory=now_iso)
    delete_reason: str = ""

    @property
    def id(self) -> str:
        return self.record.id

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data["deletedAt"] = self.deleted_at
        data["deleteReason"] = self.delete_reason
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrashItem":
        record_data = {key: value for key, value in data.items() if key not in {"deletedAt", "deleteReason"}}
        return cls(
            record=Record.from_dict(record_data),
            deleted_at=str(data.get("deletedAt") or ""),
            delete_reason=str(data.get("deleteReason") or ""),
        )


# --- Users ---

@dataclass(slots=True)
class User:
    """A CRM account. Users are deactivated, never removed."""

    name: str
    email: str
    role: str = AGENT
    pin: str = DEFAULT_PIN
    active: bool = True
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=now_iso)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "pin": self.pin,
            "active": self.active,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "User":
        return cls(
            id=str(data.get("id") or new_id()),
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            role=str(data.get("role") or AGENT),
            pin=str(data.get("pin") if data.get("pin") is not None else DEFAULT_PIN),
            active=bool(data.get("active", True)),
            created_at=str(data.get("createdAt") or ""),
        )


@dataclass(slots=True)
class Session:
    """Process-wide login session."""

    user_id: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        if self.user_id is None:
            return None
        return {"userId": self.user_id}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Session":
        if not data:
            return cls()
        return cls(user_id=data.get("userId") or None)


RECORD_FIELD_NAMES: Tuple[str, ...] = tuple(item.name for item in fields(Record))


__all__ = [
    "ADMIN",
    "AGENT",
    "CSV_COLUMNS",
    "CSV_HEADERS",
    "DEFAULT_METER_TYPE",
    "DEFAULT_PIN",
    "DEFAULT_STAGE",
    "METER_TYPES",
    "RECORD_FIELD_NAMES",
    "ROLES",
    "STAGES",
    "SUPPLIERS",
    "Record",
    "Session",
    "TrashItem",
    "User",
    "new_id",
    "now_iso",
]
