"""Tests for persistence backends and the repository."""

from __future__ import annotations

import json

import pytest

from energy_crm.models import Record, Session, TrashItem, User
from energy_crm.storage import (
    CRMRepository,
    CRMState,
    JsonFileBackend,
    MemoryBackend,
    StorageError,
)


def test_missing_keys_load_as_empty_collections() -> None:
    state = CRMRepository(MemoryBackend()).load()

    assert state.records == []
    assert state.trash == []
    assert len(state.dnc) == 0
    assert state.users == []
    assert state.session.user_id is None


def test_legacy_record_without_owner_loads_unassigned() -> None:
    backend = MemoryBackend({"records": [{"id": "r1", "company": "Old Co", "stage": "LOA"}]})

    [record] = CRMRepository(backend).load().records

    assert record.id == "r1"
    assert record.owner_id is None
    assert record.stage == "LOA"
    assert record.meter_type == "Electric"


def test_json_file_round_trip_uses_camel_case_keys(tmp_path) -> None:
    path = tmp_path / "crm.json"
    user = User(name="Ada", email="ada@example.com", role="admin")
    record = Record(owner_id=user.id, company="Acme", unit_rate_ppkwh="24.1")
    trashed = TrashItem(record=Record(company="Gone"), delete_reason="Duplicate")
    state = CRMState(records=[record], trash=[trashed], users=[user], session=Session(user_id=user.id))
    state.dnc.add("0700 000000")

    CRMRepository(JsonFileBackend(path)).commit(state)
    document = json.loads(path.read_text(encoding="utf-8"))
    reloaded = CRMRepository(JsonFileBackend(path)).load()

    assert set(document) == {"records", "trash", "dncList", "users", "session"}
    assert document["records"][0]["ownerId"] == user.id
    assert document["records"][0]["unitRatePPKWh"] == "24.1"
    assert document["trash"][0]["deleteReason"] == "Duplicate"
    assert document["session"] == {"userId": user.id}
    assert document["dncList"] == ["0700000000"]
    assert reloaded.records == [record]
    assert reloaded.trash == [trashed]
    assert reloaded.users == [user]
    assert reloaded.session.user_id == user.id


def test_commit_only_writes_selected_keys(tmp_path) -> None:
    path = tmp_path / "crm.json"
    repository = CRMRepository(JsonFileBackend(path))
    state = CRMState(records=[Record(company="Acme")])

    repository.commit(state, "records")

    assert set(json.loads(path.read_text(encoding="utf-8"))) == {"records"}
    with pytest.raises(ValueError):
        repository.commit(state, "nonsense")


def test_logged_out_session_is_null(tmp_path) -> None:
    path = tmp_path / "crm.json"

    CRMRepository(JsonFileBackend(path)).commit(CRMState(), "session")

    assert json.loads(path.read_text(encoding="utf-8")) == {"session": None}


def test_corrupt_file_raises_storage_error(tmp_path) -> None:
    path = tmp_path / "crm.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        CRMRepository(JsonFileBackend(path)).load()
