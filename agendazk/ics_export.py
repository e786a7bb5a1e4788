"""
iCalendar export of the agenda.

Builds a VCALENDAR from cached events so the shared agenda can be opened in
any calendar application. Reminders become VALARM components.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional

from icalendar import Alarm, Calendar as ICalCalendar, Event as ICalEvent
import pytz

from .date_utils import parse_iso_date
from .models import Event, NotificationType, UNIT_MILLISECONDS
from .notifications import notification_content
from .timezone_utils import get_local_timezone, parse_clock_time


PRODID = '-//AgendaZK//agendazk//'


def _alarm_offset(notification) -> timedelta:
    if notification.type == NotificationType.BEFORE.value:
        unit_ms = UNIT_MILLISECONDS.get(notification.unit, 0)
        return -timedelta(milliseconds=notification.value * unit_ms)
    return timedelta(0)


def event_to_vevent(event: Event, timezone_name: Optional[str] = None) -> ICalEvent:
    """Convert one agenda event to an icalendar.Event."""
    vevent = ICalEvent()
    vevent.add('uid', f"{event.id}@agendazk")
    vevent.add('summary', event.title)
    vevent.add('dtstamp', event.updated_at or datetime.now(pytz.UTC))
    vevent.add('class', 'PUBLIC' if event.is_public else 'PRIVATE')
    if event.owner_uid:
        vevent.add('x-agendazk-owner', event.owner_uid)

    first_day = parse_iso_date(event.start_date)
    last_day = parse_iso_date(event.last_date)

    if event.is_all_day:
        # DTEND of all-day events is exclusive
        vevent.add('dtstart', first_day)
        vevent.add('dtend', last_day + timedelta(days=1))
    else:
        local_tz = get_local_timezone(timezone_name)
        start = local_tz.localize(datetime.combine(first_day, parse_clock_time(event.start_time)))
        vevent.add('dtstart', start)
        if event.end_time:
            end = local_tz.localize(datetime.combine(last_day, parse_clock_time(event.end_time)))
            vevent.add('dtend', end)
        elif event.is_date_range:
            vevent.add('dtend', local_tz.localize(datetime.combine(last_day + timedelta(days=1), parse_clock_time(None))))

    for notification in event.notifications:
        content = notification_content(event, notification)
        alarm = Alarm()
        alarm.add('action', 'DISPLAY')
        alarm.add('description', content.title)
        alarm.add('trigger', _alarm_offset(notification))
        vevent.add_component(alarm)

    return vevent


def events_to_ical(events: Iterable[Event], timezone_name: Optional[str] = None) -> ICalCalendar:
    vcal = ICalCalendar()
    vcal.add('prodid', PRODID)
    vcal.add('version', '2.0')
    vcal.add('x-wr-calname', 'AgendaZK')
    for event in events:
        vcal.add_component(event_to_vevent(event, timezone_name))
    return vcal


def export_ics(events: Iterable[Event], path: Path, timezone_name: Optional[str] = None) -> int:
    """
    Write events to an .ics file.

    Returns:
        Number of events written.
    """
    events = list(events)
    vcal = events_to_ical(events, timezone_name)
    Path(path).write_bytes(vcal.to_ical())
    return len(events)
