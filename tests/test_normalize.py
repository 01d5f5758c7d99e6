"""Unit tests for :mod:`energy_crm.normalize`."""

from __future__ import annotations

from datetime import datetime

import pytest

from energy_crm.normalize import (
    combine_date_time,
    is_overdue,
    is_today,
    normalize_contract_end_date,
    normalize_phone,
    note_stamp,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("07123 456-789", "07123456789"),
        ("+44 (0)7123 456789", "4407123456789"),
        ("", ""),
        (None, ""),
        ("no digits", ""),
    ],
)
def test_normalize_phone_keeps_only_digits(raw, expected) -> None:
    result = normalize_phone(raw)

    assert result == expected
    assert normalize_phone(result) == result


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("25/12/2024", "2024-12-25"),
        ("25-12-2024", "2024-12-25"),
        ("25.12.2024", "2024-12-25"),
        ("2024.12.25", "2024-12-25"),
        ("2024/12/25", "2024-12-25"),
        ("2024-12-25", "2024-12-25"),
        ("1/2/24", "2024-02-01"),
        ("2024-1-5", "2024-01-05"),
        (" 05/06/2025 ", "2025-06-05"),
    ],
)
def test_normalize_contract_end_date_formats(raw, expected) -> None:
    assert normalize_contract_end_date(raw) == expected
    assert normalize_contract_end_date(expected) == expected


def test_normalize_contract_end_date_passes_free_text_through() -> None:
    assert normalize_contract_end_date("") == ""
    assert normalize_contract_end_date("next spring") == "next spring"
    once = normalize_contract_end_date("approx. Q3")
    assert normalize_contract_end_date(once) == once


def test_combine_date_time_defaults_to_midnight() -> None:
    assert combine_date_time("2024-03-01") == datetime(2024, 3, 1, 0, 0)
    assert combine_date_time("2024-03-01", "14:30") == datetime(2024, 3, 1, 14, 30)
    assert combine_date_time("", "14:30") is None
    assert combine_date_time(None) is None


def test_today_and_overdue_flags() -> None:
    now = datetime(2024, 3, 1, 12, 0)

    assert is_today("2024-03-01", now=now)
    assert not is_today("2024-03-02", now=now)
    assert is_overdue("2024-03-01", "09:00", now=now)
    assert not is_overdue("2024-03-01", "15:00", now=now)
    assert not is_overdue("", now=now)


def test_note_stamp_format() -> None:
    assert note_stamp(datetime(2024, 1, 2, 3, 4)) == "[2024-01-02 03:04] "
