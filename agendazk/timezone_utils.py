"""
Timezone utilities for AgendaZK.

Events are stored as calendar dates and wall-clock times. Reminder triggers
are absolute instants, so every conversion between the two goes through here.
"""

from datetime import datetime, date, time
from typing import Optional
import time as _time
import pytz


# Default timezone - can be overridden by config
_local_timezone_name: str = "Europe/Paris"


def set_timezone(timezone_name: str):
    """Set the local timezone for the application."""
    global _local_timezone_name
    _local_timezone_name = timezone_name


def get_local_timezone(timezone_name: Optional[str] = None):
    """
    Get the local timezone as a pytz timezone object.

    Args:
        timezone_name: Explicit zone name; the configured one is used when omitted.

    Returns:
        pytz timezone object.
    """
    try:
        return pytz.timezone(timezone_name or _local_timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback: fixed offset of the host clock
        is_dst = _time.localtime().tm_isdst
        if is_dst:
            offset_seconds = -_time.altzone
        else:
            offset_seconds = -_time.timezone
        return pytz.FixedOffset(offset_seconds // 60)


def parse_clock_time(value: Optional[str]) -> time:
    """Parse an 'HH:MM' string; None or empty means midnight."""
    if not value:
        return time(0, 0)
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes))


def combine_local(day: date, clock: time, timezone_name: Optional[str] = None) -> datetime:
    """
    Combine a calendar date and a wall-clock time in the local timezone.

    Returns:
        A timezone-aware datetime in UTC.
    """
    local_tz = get_local_timezone(timezone_name)
    local_dt = local_tz.localize(datetime.combine(day, clock))
    return local_dt.astimezone(pytz.UTC)


def to_local_datetime(dt: datetime, timezone_name: Optional[str] = None) -> datetime:
    """
    Convert an aware datetime to the local timezone.

    Naive datetimes are returned unchanged.
    """
    if dt.tzinfo is not None:
        return dt.astimezone(get_local_timezone(timezone_name))
    return dt


def to_utc_datetime(dt: datetime, timezone_name: Optional[str] = None) -> datetime:
    """
    Convert a datetime to UTC.

    Naive datetimes are assumed to be local wall-clock times.
    """
    if dt.tzinfo is None:
        local_tz = get_local_timezone(timezone_name)
        return local_tz.localize(dt).astimezone(pytz.UTC)
    return dt.astimezone(pytz.UTC)


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(pytz.UTC)
