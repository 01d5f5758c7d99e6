"""Tests for user accounts, roles, and the session."""

from __future__ import annotations

import pytest

from energy_crm.errors import AuthError, ValidationError
from energy_crm.users import UserStore


def test_first_admin_defaults_pin_and_signs_in() -> None:
    store = UserStore()
    assert store.needs_bootstrap

    admin = store.create_first_admin("Ada", "ada@example.com", pin="")

    assert admin.role == "admin"
    assert admin.pin == "1234"
    assert store.current_user is admin
    assert not store.needs_bootstrap


def test_first_admin_only_once() -> None:
    store = UserStore()
    store.create_first_admin("Ada", "ada@example.com")

    with pytest.raises(ValidationError):
        store.create_first_admin("Bob", "bob@example.com")


def test_login_failures_leave_session_unchanged() -> None:
    store = UserStore()
    admin = store.create_first_admin("Ada", "ada@example.com", pin="9999")
    agent = store.add_user("Bob", "bob@example.com", pin="1111")
    store.logout()

    with pytest.raises(AuthError) as not_found:
        store.login("nobody@example.com", "1111")
    with pytest.raises(AuthError) as wrong_pin:
        store.login("bob@example.com", "0000")

    assert not_found.value.reason == AuthError.USER_NOT_FOUND
    assert str(not_found.value) == "User not found or inactive"
    assert wrong_pin.value.reason == AuthError.WRONG_PIN
    assert store.session.user_id is None

    assert store.login("bob@example.com", 1111) is agent
    assert store.current_user is agent
    assert store.find(admin.id) is admin


def test_inactive_user_cannot_log_in() -> None:
    store = UserStore()
    store.create_first_admin("Ada", "ada@example.com")
    agent = store.add_user("Bob", "bob@example.com")
    store.deactivate(agent.id)

    with pytest.raises(AuthError) as excinfo:
        store.login("bob@example.com", "1234")

    assert excinfo.value.reason == AuthError.USER_NOT_FOUND
    assert agent in store.users


def test_add_user_requires_name_and_email() -> None:
    store = UserStore()

    with pytest.raises(ValidationError):
        store.add_user("", "x@example.com")
    with pytest.raises(ValidationError):
        store.add_user("X", "  ")
    with pytest.raises(ValidationError):
        store.add_user("X", "x@example.com", role="manager")
    assert store.users == []


def test_edit_user_keeps_pin_when_blank() -> None:
    store = UserStore()
    user = store.add_user("Bob", "bob@example.com", pin="4321")

    store.edit_user(user.id, name="Robert", email="rob@example.com", role="admin", pin="")

    assert (user.name, user.email, user.role, user.pin) == ("Robert", "rob@example.com", "admin", "4321")

    store.edit_user(user.id, name="Robert", email="rob@example.com", role="admin", pin="5555")

    assert user.pin == "5555"


def test_duplicate_email_rejected() -> None:
    store = UserStore()
    store.add_user("Bob", "bob@example.com")
    other = store.add_user("Carol", "carol@example.com")

    with pytest.raises(ValidationError):
        store.add_user("Bobby", "bob@example.com")
    with pytest.raises(ValidationError):
        store.edit_user(other.id, name="Carol", email="bob@example.com", role="agent")
