"""Tests for date and time helpers."""
from datetime import date

import pytest

from agendazk import date_utils


@pytest.mark.parametrize("value,valid", [
    ("2024-02-29", True),
    ("2023-02-29", False),
    ("2024-6-1", False),
    ("", False),
    (None, False),
    (date(2024, 6, 1), True),
])
def test_is_valid_date(value, valid) -> None:
    assert date_utils.is_valid_date(value) is valid


@pytest.mark.parametrize("value,valid", [
    ("00:00", True),
    ("9:05", True),
    ("23:59", True),
    ("24:00", False),
    ("12:60", False),
    ("noon", False),
    (None, False),
])
def test_is_valid_time(value, valid) -> None:
    assert date_utils.is_valid_time(value) is valid


def test_compare_times() -> None:
    assert date_utils.compare_times("9:00", "10:00") == -1
    assert date_utils.compare_times("10:00", "09:59") == 1
    assert date_utils.compare_times("09:00", "9:00") == 0
    assert date_utils.compare_times(None, "9:00") == 0


@pytest.mark.parametrize("minutes,text", [(45, "45 min"), (120, "2h"), (65, "1h05")])
def test_format_duration(minutes, text) -> None:
    assert date_utils.format_duration(minutes) == text


def test_duration_in_minutes() -> None:
    assert date_utils.duration_in_minutes("09:15", "10:45") == 90
    assert date_utils.duration_in_minutes("09:15", None) == 0


def test_week_and_month_bounds() -> None:
    # 2024-06-13 is a Thursday
    assert date_utils.week_bounds("2024-06-13") == ("2024-06-10", "2024-06-16")
    assert date_utils.month_bounds("2024-02-10") == ("2024-02-01", "2024-02-29")
    assert date_utils.month_bounds(date(2024, 12, 31)) == ("2024-12-01", "2024-12-31")


def test_days_in_range() -> None:
    assert date_utils.days_in_range("2024-02-28", "2024-03-01") == ["2024-02-28", "2024-02-29", "2024-03-01"]
    assert date_utils.days_in_range("2024-03-01", "2024-02-28") == []


def test_add_days() -> None:
    assert date_utils.add_days("2024-12-31", 1) == "2025-01-01"
