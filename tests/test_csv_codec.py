"""Tests for the CSV codec in :mod:`energy_crm.io`."""

from __future__ import annotations

from datetime import date

import pytest

from energy_crm.errors import CSVFormatError
from energy_crm.io import csv_template, export_filename, parse_csv, read_csv_file, records_to_csv, write_csv_file
from energy_crm.models import CSV_HEADERS, Record


def _tricky_records() -> list[Record]:
    return [
        Record(
            owner_id="owner-1",
            company="Smith, Jones & Co",
            contact='Ann "The Boss" Smith',
            phone="07123 456789",
            email="ann@example.com",
            meter_type="Gas",
            mprn="1234567",
            supplier="British Gas",
            ced="2025-03-31",
            stage="Qualified",
            notes="[2024-01-01 10:00] first call\nleft voicemail, retry",
            next_call_date="2024-02-01",
            next_call_time="09:30",
        ),
        Record(company="Plain Ltd", mpan_core="1234567890123", unit_rate_ppkwh="24.5"),
    ]


def test_records_to_csv_starts_with_header_and_omits_internal_fields() -> None:
    text = records_to_csv(_tricky_records())

    header = text.split("\n", 1)[0]
    assert header == ",".join(CSV_HEADERS)
    assert "owner-1" not in text
    assert '"Smith, Jones & Co"' in text
    assert '"Ann ""The Boss"" Smith"' in text


def test_csv_round_trip_preserves_schema_fields() -> None:
    originals = _tricky_records()

    parsed = parse_csv(records_to_csv(originals))

    assert [record.schema_values() for record in parsed] == [record.schema_values() for record in originals]
    assert all(record.owner_id is None for record in parsed)
    assert {record.id for record in parsed}.isdisjoint({record.id for record in originals})


def test_parse_csv_applies_defaults_and_normalises_ced() -> None:
    text = "company,phone,ced,stage,meterType\r\nAcme,0700,25.12.2024,,\r\n"

    [record] = parse_csv(text)

    assert record.company == "Acme"
    assert record.ced == "2024-12-25"
    assert record.stage == "Prospect"
    assert record.meter_type == "Electric"
    assert record.contact == ""


def test_parse_csv_tolerates_short_rows_and_ignores_unknown_columns() -> None:
    text = "company,contact,phone,colour\nAcme\nBeta,Bob,0711,blue\n"

    first, second = parse_csv(text)

    assert first.company == "Acme"
    assert first.contact == ""
    assert first.phone == ""
    assert second.phone == "0711"


def test_parse_csv_without_data_rows_is_empty() -> None:
    assert parse_csv("") == []
    assert parse_csv(",".join(CSV_HEADERS) + "\n") == []
    assert parse_csv("\n\n") == []


def test_parse_csv_replaces_unknown_stage() -> None:
    [record] = parse_csv("company,stage\nAcme,Lost\n")

    assert record.stage == "Prospect"


def test_template_and_export_filename() -> None:
    assert csv_template() == ",".join(CSV_HEADERS) + "\n"
    assert export_filename(today=date(2024, 5, 6)) == "cardinal-crm-2024-05-06.csv"
    assert export_filename("leads", today=date(2024, 5, 6)) == "leads-2024-05-06.csv"


def test_csv_files_round_trip(tmp_path) -> None:
    path = tmp_path / "out" / "records.csv"

    write_csv_file(path, _tricky_records())
    loaded = read_csv_file(path)

    assert path.read_text(encoding="utf-8").count("\r\n") == 0
    assert [record.company for record in loaded] == ["Smith, Jones & Co", "Plain Ltd"]


def test_csv_round_trip_keeps_carriage_returns_inside_cells() -> None:
    original = Record(company="Acme\rLtd", notes="first\r\nsecond", next_call_notes="call\nback")

    text = records_to_csv([original])
    [parsed] = parse_csv(text)

    assert text.endswith("\n")
    assert "\r\n" not in text.replace("first\r\nsecond", "")
    assert parsed.company == "Acme\rLtd"
    assert parsed.notes == "first\r\nsecond"
    assert parsed.next_call_notes == "call\nback"


def test_parse_csv_accepts_crlf_rows_and_skips_blank_lines() -> None:
    text = 'company,notes\r\nAcme,"one\r\ntwo"\r\n\r\nBeta,\r\n'

    first, second = parse_csv(text)

    assert (first.company, first.notes) == ("Acme", "one\r\ntwo")
    assert (second.company, second.notes) == ("Beta", "")


def test_read_csv_file_rejects_non_utf8_bytes(tmp_path) -> None:
    path = tmp_path / "legacy.csv"
    path.write_bytes(b"company,phone\n\xff\xfeAcme,0700\n")

    with pytest.raises(CSVFormatError, match="not UTF-8"):
        read_csv_file(path)
