"""
Reminder scheduling for AgendaZK.

Each (event, notification spec) pair yields a trigger time: the event start
(start date plus start time, or midnight) for 'at_event' reminders, or that
instant minus value x unit for 'before' reminders. Whenever the event list
changes, every scheduled reminder is cancelled and the whole set is
scheduled again; triggers that are not in the future are skipped.
"""

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional
import uuid

import pytz

from .date_utils import parse_iso_date
from .models import Event, NotificationSpec, NotificationType, UNIT_MILLISECONDS
from .timezone_utils import combine_local, parse_clock_time


NOTIFICATION_CATEGORY = "agenda-events"

_UNIT_NAMES = {
    "minutes": ("minute", "minutes"),
    "hours": ("hour", "hours"),
    "days": ("day", "days"),
    "weeks": ("week", "weeks"),
}


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] NOTIFY: {msg}", file=sys.stderr)


# ==================== Trigger times ====================

def event_datetime(event: Event, timezone_name: Optional[str] = None) -> datetime:
    """Start instant of an event (UTC), midnight when it has no start time."""
    return combine_local(
        parse_iso_date(event.start_date),
        parse_clock_time(event.start_time),
        timezone_name,
    )


def calculate_notification_time(event_time: datetime, notification: NotificationSpec) -> datetime:
    """
    Trigger instant of a reminder for an event starting at event_time.

    'before' reminders subtract value x unit; anything else fires at the
    event time itself.
    """
    if notification.type == NotificationType.BEFORE.value:
        unit_ms = UNIT_MILLISECONDS.get(notification.unit)
        if unit_ms is None:
            return event_time
        return event_time - timedelta(milliseconds=notification.value * unit_ms)
    return event_time


def trigger_time(event: Event, notification: NotificationSpec, timezone_name: Optional[str] = None) -> datetime:
    return calculate_notification_time(event_datetime(event, timezone_name), notification)


# ==================== Content ====================

@dataclass
class NotificationContent:
    title: str
    body: str
    data: dict = field(default_factory=dict)
    category: str = NOTIFICATION_CATEGORY


def notification_time_text(notification: NotificationSpec) -> str:
    """Human wording of a 'before' offset, e.g. 'in 1 hour'."""
    singular, plural = _UNIT_NAMES.get(notification.unit, (notification.unit, notification.unit))
    unit_name = singular if notification.value == 1 else plural
    return f"in {notification.value} {unit_name}"


def notification_content(event: Event, notification: NotificationSpec) -> NotificationContent:
    if notification.type == NotificationType.AT_EVENT.value:
        title = "📅 Event now"
    else:
        title = f"⏰ Reminder - {notification_time_text(notification)}"
    return NotificationContent(
        title=title,
        body=event.title,
        data={"eventId": event.id, "notificationType": notification.type},
    )


# ==================== Backends ====================

class NotificationBackend(ABC):
    """Abstract platform notification service."""

    @abstractmethod
    def request_permissions(self) -> bool:
        """Ask for permission to show notifications; True when granted."""
        pass

    @abstractmethod
    def schedule(self, trigger: datetime, content: NotificationContent) -> str:
        """Schedule content to be shown at trigger; returns a notification id."""
        pass

    @abstractmethod
    def cancel(self, notification_id: str) -> None:
        pass

    @abstractmethod
    def cancel_all(self) -> None:
        pass


@dataclass
class ScheduledNotification:
    id: str
    trigger: datetime
    content: NotificationContent


class MemoryNotificationBackend(NotificationBackend):
    """Backend that only records what would be shown (tests, dry runs)."""

    def __init__(self, granted: bool = True):
        self.granted = granted
        self.scheduled: dict[str, ScheduledNotification] = {}

    def request_permissions(self) -> bool:
        return self.granted

    def schedule(self, trigger: datetime, content: NotificationContent) -> str:
        notification_id = str(uuid.uuid4())
        self.scheduled[notification_id] = ScheduledNotification(notification_id, trigger, content)
        return notification_id

    def cancel(self, notification_id: str) -> None:
        self.scheduled.pop(notification_id, None)

    def cancel_all(self) -> None:
        self.scheduled.clear()


# ==================== Service ====================

class NotificationService:
    """
    Keeps the platform's scheduled reminders in line with the event list.

    Args:
        backend: Platform notification service.
        event_service: Source of event list updates (anything with add_listener()).
        clock: Returns the current aware datetime; defaults to UTC now.
        timezone_name: Zone in which event dates and times are interpreted.
    """

    def __init__(
        self,
        backend: NotificationBackend,
        event_service=None,
        clock: Optional[Callable[[], datetime]] = None,
        timezone_name: Optional[str] = None,
    ):
        self._backend = backend
        self._event_service = event_service
        self._clock = clock or (lambda: datetime.now(pytz.UTC))
        self._timezone_name = timezone_name

        self.is_initialized = False
        self._scheduled: dict[str, str] = {}  # "<event id>_<spec key>" -> notification id
        self._remove_listener: Optional[Callable[[], None]] = None

    def initialize(self) -> bool:
        """Request permission and start following event list updates."""
        if not self._backend.request_permissions():
            _debug_print("Notification permission denied")
            return False

        self.is_initialized = True
        if self._event_service is not None and self._remove_listener is None:
            self._remove_listener = self._event_service.add_listener(self.handle_events_update)
            # Catch up with whatever the cache already holds
            self.handle_events_update(self._event_service.get_events())
        _debug_print("Notification service initialized")
        return True

    @property
    def scheduled_keys(self) -> list[str]:
        return list(self._scheduled.keys())

    def handle_events_update(self, events: list[Event]) -> None:
        """Cancel everything, then schedule every reminder again."""
        if not self.is_initialized:
            return
        try:
            self.cancel_all_notifications()
            self.schedule_all_notifications(events)
        except Exception as e:
            _debug_print(f"Error updating notifications: {e}")

    def schedule_all_notifications(self, events: Iterable[Event]) -> None:
        for event in events:
            self.schedule_event_notifications(event)

    def schedule_event_notifications(self, event: Event) -> None:
        if not self.is_initialized or not event.notifications:
            return
        for notification in event.notifications:
            try:
                self.schedule_notification(event, notification)
            except Exception as e:
                _debug_print(f"Error scheduling notification for event {event.id}: {e}")

    def schedule_notification(self, event: Event, notification: NotificationSpec) -> Optional[str]:
        """
        Schedule one reminder.

        Returns:
            The backend notification id, or None when the reminder was skipped
            (unknown type, or a trigger that is not in the future).
        """
        if notification.type not in (NotificationType.AT_EVENT.value, NotificationType.BEFORE.value):
            return None

        key = f"{event.id}_{notification.key}"
        if key in self._scheduled:
            # Identical reminder already pending for this event
            return self._scheduled[key]

        trigger = trigger_time(event, notification, self._timezone_name)
        if trigger <= self._clock():
            return None

        content = notification_content(event, notification)
        notification_id = self._backend.schedule(trigger, content)
        self._scheduled[key] = notification_id
        _debug_print(f"Notification scheduled for {trigger.isoformat()}: {event.title}")
        return notification_id

    def cancel_all_notifications(self) -> None:
        self._backend.cancel_all()
        self._scheduled.clear()

    def cancel_event_notifications(self, event_id: str) -> None:
        prefix = f"{event_id}_"
        for key in [k for k in self._scheduled if k.startswith(prefix)]:
            self._backend.cancel(self._scheduled.pop(key))
        _debug_print(f"Notifications cancelled for event: {event_id}")

    def upcoming(
        self,
        events: Iterable[Event],
        now: Optional[datetime] = None,
    ) -> list[tuple[datetime, Event, NotificationSpec]]:
        """Future reminder triggers of events, soonest first."""
        now = now or self._clock()
        pending = []
        for event in events:
            for notification in event.notifications:
                trigger = trigger_time(event, notification, self._timezone_name)
                if trigger > now:
                    pending.append((trigger, event, notification))
        pending.sort(key=lambda item: item[0])
        return pending

    def send_test_notification(self, seconds: int = 2) -> Optional[str]:
        if not self.is_initialized:
            _debug_print("Notification service not initialized")
            return None
        content = NotificationContent(
            title="🧪 Test Notification",
            body="This is an AgendaZK test notification",
            data={"test": True},
        )
        return self._backend.schedule(self._clock() + timedelta(seconds=seconds), content)

    def cleanup(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        self.cancel_all_notifications()
        self.is_initialized = False
