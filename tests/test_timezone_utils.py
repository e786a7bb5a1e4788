"""Tests for timezone conversions."""
from datetime import date, datetime, time

import pytz

from agendazk.timezone_utils import (
    combine_local,
    get_local_timezone,
    parse_clock_time,
    to_local_datetime,
    to_utc_datetime,
)


def test_parse_clock_time() -> None:
    assert parse_clock_time("9:05") == time(9, 5)
    assert parse_clock_time(None) == time(0, 0)
    assert parse_clock_time("") == time(0, 0)


def test_combine_local_handles_dst() -> None:
    winter = combine_local(date(2024, 1, 15), time(9, 0), "Europe/Paris")
    summer = combine_local(date(2024, 7, 15), time(9, 0), "Europe/Paris")
    assert winter == datetime(2024, 1, 15, 8, 0, tzinfo=pytz.UTC)
    assert summer == datetime(2024, 7, 15, 7, 0, tzinfo=pytz.UTC)


def test_round_trip_local_utc() -> None:
    naive = datetime(2024, 3, 1, 18, 30)
    utc = to_utc_datetime(naive, "America/New_York")
    assert utc == datetime(2024, 3, 1, 23, 30, tzinfo=pytz.UTC)
    assert to_local_datetime(utc, "America/New_York").replace(tzinfo=None) == naive


def test_unknown_zone_falls_back_to_fixed_offset() -> None:
    tz = get_local_timezone("Nowhere/Atlantis")
    assert tz.utcoffset(datetime(2024, 1, 1)) is not None
