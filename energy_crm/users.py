"""User accounts, roles, and the login session."""
from __future__ import annotations

import logging
from typing import List, Optional

from .errors import AuthError, RecordNotFoundError, ValidationError
from .models import ADMIN, AGENT, DEFAULT_PIN, ROLES, Session, User

LOGGER = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class UserStore:
    """Holds every user ever created and the current session."""

    def __init__(
        self,
        users: Optional[List[User]] = None,
        session: Optional[Session] = None,
        *,
        default_pin: str = DEFAULT_PIN,
    ) -> None:
        self.users: List[User] = users if users is not None else []
        self.session = session if session is not None else Session()
        self.default_pin = default_pin

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    @property
    def needs_bootstrap(self) -> bool:
        return not self.users

    @property
    def current_user(self) -> Optional[User]:
        if self.session.user_id is None:
            return None
        return self.find(self.session.user_id)

    def find(self, user_id: Optional[str]) -> Optional[User]:
        if user_id is None:
            return None
        return next((user for user in self.users if user.id == user_id), None)

    def get(self, user_id: str) -> User:
        user = self.find(user_id)
        if user is None:
            raise RecordNotFoundError(f"User '{user_id}' not found")
        return user

    def find_active_by_email(self, email: Optional[str]) -> Optional[User]:
        wanted = _clean(email)
        return next((user for user in self.users if user.email == wanted and user.active), None)

    def active_users(self) -> List[User]:
        return [user for user in self.users if user.active]

    # ------------------------------------------------------------------
    # Bootstrap and session
    # ------------------------------------------------------------------
    def create_first_admin(self, name: str, email: str, pin: Optional[str] = None) -> User:
        """Create the initial admin and sign them in. Only valid while no users exist."""

        if not self.needs_bootstrap:
            raise ValidationError("An administrator already exists")
        admin = self._build_user(name, email, role=ADMIN, pin=pin)
        self.users.append(admin)
        self.session = Session(user_id=admin.id)
        LOGGER.info("Created first administrator %s", admin.email)
        return admin

    def login(self, email: str, pin: object) -> User:
        user = self.find_active_by_email(email)
        if user is None:
            raise AuthError(AuthError.USER_NOT_FOUND)
        if str(pin) != str(user.pin):
            raise AuthError(AuthError.WRONG_PIN)
        self.session = Session(user_id=user.id)
        LOGGER.info("User %s signed in", user.email)
        return user

    def logout(self) -> None:
        self.session = Session()

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------
    def add_user(self, name: str, email: str, *, role: str = AGENT, pin: Optional[str] = None) -> User:
        user = self._build_user(name, email, role=role, pin=pin)
        self.users.append(user)
        LOGGER.info("Added %s user %s", user.role, user.email)
        return user

    def edit_user(
        self,
        user_id: str,
        *,
        name: str,
        email: str,
        role: str,
        pin: Optional[str] = None,
    ) -> User:
        """Update a user's details; the PIN only changes when a non-blank value is given."""

        user = self.get(user_id)
        name, email = self._validate(name, email, role)
        self._ensure_unique_email(email, exclude=user.id)
        user.name = name
        user.email = email
        user.role = role
        if _clean(pin):
            user.pin = _clean(pin)
        return user

    def deactivate(self, user_id: str) -> User:
        user = self.get(user_id)
        user.active = False
        LOGGER.info("Deactivated user %s", user.email)
        return user

    # ------------------------------------------------------------------
    def _build_user(self, name: str, email: str, *, role: str, pin: Optional[str]) -> User:
        name, email = self._validate(name, email, role)
        self._ensure_unique_email(email)
        return User(name=name, email=email, role=role, pin=_clean(pin) or self.default_pin)

    @staticmethod
    def _validate(name: str, email: str, role: str) -> tuple[str, str]:
        name, email = _clean(name), _clean(email)
        if not name or not email:
            raise ValidationError("Name and email required")
        if role not in ROLES:
            raise ValidationError(f"Unknown role '{role}'. Expected one of: {', '.join(ROLES)}")
        return name, email

    def _ensure_unique_email(self, email: str, *, exclude: Optional[str] = None) -> None:
        if any(user.email == email and user.id != exclude for user in self.users):
            raise ValidationError(f"A user with email '{email}' already exists")


__all__ = ["UserStore"]
