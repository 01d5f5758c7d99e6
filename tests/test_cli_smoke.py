"""Smoke tests for the CLI entry point."""
from __future__ import annotations

import json

import pytest

from energy_crm import __main__
from energy_crm.cli import EXIT_ERROR, EXIT_NEEDS_CONFIRMATION, EXIT_OK, main


@pytest.fixture()
def store(tmp_path):
    path = tmp_path / "crm.json"
    assert main(["--store", str(path), "setup", "Ada Admin", "ada@example.com", "--pin", "9999"]) == EXIT_OK
    return path


def _run(store, *args: str) -> int:
    return main(["--store", str(store), *args])


def test_cli_add_list_and_delete_flow(store, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(store, "add", "--set", "company=Acme", "--set", "phone=0712 345678") == EXIT_NEEDS_CONFIRMATION
    assert "No call back date selected" in capsys.readouterr().out

    assert _run(store, "--yes", "add", "--set", "company=Acme", "--set", "phone=0712 345678") == EXIT_OK
    assert _run(store, "list") == EXIT_OK
    listing = capsys.readouterr().out
    assert "Acme" in listing
    assert "1 record(s)" in listing

    record_id = json.loads(store.read_text(encoding="utf-8"))["records"][0]["id"]
    assert _run(store, "delete", record_id) == EXIT_NEEDS_CONFIRMATION
    assert _run(store, "--yes", "delete", record_id) == EXIT_OK

    document = json.loads(store.read_text(encoding="utf-8"))
    assert document["records"] == []
    assert document["trash"][0]["deleteReason"] == "Not interested"
    assert document["dncList"] == ["0712345678"]


def test_cli_import_export_and_template(store, tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "input.csv"
    source.write_text("company,contact,ced\nAcme,Jane,25/12/2024\n", encoding="utf-8")
    output = tmp_path / "out.csv"
    template = tmp_path / "template.csv"

    assert _run(store, "import", str(source), "--owner-email", "ada@example.com") == EXIT_OK
    assert "Imported 1 record(s) to Ada Admin." in capsys.readouterr().out
    assert _run(store, "export", str(output)) == EXIT_OK
    assert _run(store, "template", str(template)) == EXIT_OK

    exported = output.read_text(encoding="utf-8")
    assert "Acme,Jane" in exported
    assert "2024-12-25" in exported
    assert template.read_text(encoding="utf-8").startswith("company,contact,phone,email,meterType")


def test_cli_login_failure_and_logout(store, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(store, "logout") == EXIT_OK
    assert _run(store, "list") == EXIT_ERROR
    assert _run(store, "login", "ada@example.com", "0000") == EXIT_ERROR
    assert "Wrong PIN" in capsys.readouterr().err
    assert _run(store, "login", "ada@example.com", "9999") == EXIT_OK
    assert _run(store, "whoami") == EXIT_OK
    assert "ADMIN" in capsys.readouterr().out


def test_cli_user_management(store, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(store, "users", "add", "Bob", "bob@example.com") == EXIT_OK
    assert _run(store, "users", "add", "Cy", "cy@example.com") == EXIT_OK
    assert _run(store, "--yes", "users", "deactivate", "bob@example.com", "--reassign-to", "cy@example.com") == EXIT_OK
    assert _run(store, "users", "list") == EXIT_OK

    out = capsys.readouterr().out
    assert "bob@example.com\tagent\tinactive" in out
    assert "cy@example.com\tagent\tactive" in out


def test_module_entry_point_delegates_to_cli(tmp_path) -> None:
    path = tmp_path / "crm.json"

    exit_code = __main__.main(["--store", str(path), "setup", "Ada", "ada@example.com"])

    assert exit_code == EXIT_OK
    assert json.loads(path.read_text(encoding="utf-8"))["users"][0]["pin"] == "1234"


def test_module_entry_point_without_arguments_shows_help(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = __main__.main([])

    captured = capsys.readouterr()
    assert "python -m energy_crm" in captured.out
    assert exit_code == 2
