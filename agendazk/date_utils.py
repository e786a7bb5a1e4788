"""
Date helpers for AgendaZK.

Dates travel as ISO 'YYYY-MM-DD' strings and times as 'HH:MM' strings, which
keeps lexical and chronological order identical.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional, Union


DATE_FORMAT = "%Y-%m-%d"
_TIME_RE = re.compile(r'^([01]?[0-9]|2[0-3]):[0-5][0-9]$')
_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

DateLike = Union[str, date]


def parse_iso_date(value: DateLike) -> date:
    """Parse an ISO date string (datetimes are truncated to their date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, DATE_FORMAT).date()


def to_iso_date(value: DateLike) -> str:
    """Normalize a date or ISO string to 'YYYY-MM-DD'."""
    return parse_iso_date(value).strftime(DATE_FORMAT)


def is_valid_date(value) -> bool:
    if isinstance(value, date):
        return True
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        parse_iso_date(value)
    except ValueError:
        return False
    return True


def is_valid_time(value) -> bool:
    """Check for an 'HH:MM' (24h) clock time."""
    if not value or not isinstance(value, str):
        return False
    return bool(_TIME_RE.match(value))


def _minutes(value: str) -> int:
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def compare_times(first: Optional[str], second: Optional[str]) -> int:
    """Compare two 'HH:MM' times; returns -1, 0 or 1 (0 if either is missing)."""
    if not first or not second:
        return 0
    a, b = _minutes(first), _minutes(second)
    return (a > b) - (a < b)


def duration_in_minutes(start_time: Optional[str], end_time: Optional[str]) -> int:
    if not start_time or not end_time:
        return 0
    return _minutes(end_time) - _minutes(start_time)


def format_duration(minutes: int) -> str:
    """Render a duration like '45 min', '2h' or '1h05'."""
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h{remaining:02d}"


def add_days(value: DateLike, days: int) -> str:
    return to_iso_date(parse_iso_date(value) + timedelta(days=days))


def week_bounds(value: DateLike) -> tuple[str, str]:
    """First and last day of the week containing value (weeks start on Monday)."""
    day = parse_iso_date(value)
    start = day - timedelta(days=day.weekday())
    return to_iso_date(start), to_iso_date(start + timedelta(days=6))


def month_bounds(value: DateLike) -> tuple[str, str]:
    day = parse_iso_date(value)
    start = day.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return to_iso_date(start), to_iso_date(next_month - timedelta(days=1))


def days_in_range(start: DateLike, end: DateLike) -> list[str]:
    """All days from start to end inclusive; empty if end precedes start."""
    current = parse_iso_date(start)
    last = parse_iso_date(end)
    days = []
    while current <= last:
        days.append(to_iso_date(current))
        current += timedelta(days=1)
    return days
