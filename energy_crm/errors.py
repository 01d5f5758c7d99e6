"""Exception hierarchy and command outcomes for the CRM core."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class CRMError(Exception):
    """Base class for expected, user-facing CRM failures."""


class ValidationError(CRMError, ValueError):
    """Raised when required input is missing or invalid; nothing is written."""


class AuthError(CRMError):
    """Raised when a login attempt fails. The session is left unchanged."""

    USER_NOT_FOUND = "UserNotFound"
    WRONG_PIN = "WrongPin"

    _MESSAGES = {
        USER_NOT_FOUND: "User not found or inactive",
        WRONG_PIN: "Wrong PIN",
    }

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(self._MESSAGES.get(reason, reason))


class PermissionDenied(CRMError, PermissionError):
    """Raised when the acting user's role does not allow an operation."""


class RecordNotFoundError(CRMError, KeyError):
    """Raised when a record, trash item, or user id is unknown."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Not found"


class CSVFormatError(CRMError, ValueError):
    """Raised when an import file cannot be decoded or parsed as CSV."""


@dataclass(slots=True)
class CommandOutcome:
    """Result of a command that may need an explicit confirmation.

    When ``requires_confirmation`` is set nothing has changed; the caller shows
    ``message`` and re-invokes the command with ``confirm=True`` to proceed.
    """

    action: str
    applied: bool
    message: str = ""
    affected: int = 0
    requires_confirmation: bool = False
    value: Optional[Any] = None

    @classmethod
    def confirm_first(cls, action: str, message: str, *, affected: int = 0) -> "CommandOutcome":
        return cls(action=action, applied=False, message=message, affected=affected, requires_confirmation=True)

    @classmethod
    def done(cls, action: str, message: str = "", *, affected: int = 0, value: Any = None) -> "CommandOutcome":
        return cls(action=action, applied=True, message=message, affected=affected, value=value)

    @classmethod
    def skipped(cls, action: str, message: str) -> "CommandOutcome":
        return cls(action=action, applied=False, message=message)


@dataclass(slots=True)
class ImportSummary:
    """Outcome of a CSV/spreadsheet import. ``count == 0`` means nothing was merged."""

    count: int
    owner_id: Optional[str] = None
    message: str = ""

    @property
    def empty(self) -> bool:
        return self.count == 0


__all__ = [
    "AuthError",
    "CSVFormatError",
    "CRMError",
    "CommandOutcome",
    "ImportSummary",
    "PermissionDenied",
    "RecordNotFoundError",
    "ValidationError",
]
