"""Single-tenant sales CRM for tracking energy supply leads."""

from . import models  # noqa: F401
from .dnc import DncList
from .engine import CRMEngine
from .errors import (
    AuthError,
    CSVFormatError,
    CommandOutcome,
    CRMError,
    ImportSummary,
    PermissionDenied,
    RecordNotFoundError,
    ValidationError,
)
from .models import STAGES, Record, Session, TrashItem, User
from .query import ViewState

__all__ = [
    "AuthError",
    "CSVFormatError",
    "CRMEngine",
    "CRMError",
    "CommandOutcome",
    "DncList",
    "ImportSummary",
    "PermissionDenied",
    "Record",
    "RecordNotFoundError",
    "STAGES",
    "Session",
    "TrashItem",
    "User",
    "ValidationError",
    "ViewState",
    "ingestion",
    "engine",
]
