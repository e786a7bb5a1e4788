"""
Validation of event data before any write reaches the document store.

Validation is all-or-nothing: the first violated rule raises and nothing is
written. Messages are meant to be shown to the user as they are.
"""

from .date_utils import is_valid_date, is_valid_time
from .models import (
    Event, EventType, Visibility, NotificationType, NotificationUnit,
    NOTIFICATION_VALUE_MIN, NOTIFICATION_VALUE_MAX,
)


EVENT_TYPES = {t.value for t in EventType}
VISIBILITIES = {v.value for v in Visibility}
NOTIFICATION_TYPES = {t.value for t in NotificationType}
NOTIFICATION_UNITS = {u.value for u in NotificationUnit}


class EventValidationError(ValueError):
    """Raised when event data breaks one of the agenda rules."""


def validate_event_data(event: Event) -> None:
    """
    Check an event before it is created or updated.

    Raises:
        EventValidationError: describing the first rule the event breaks.
    """
    if not event.title or not event.title.strip():
        raise EventValidationError("Event title is required")

    if event.type not in EVENT_TYPES:
        raise EventValidationError(f"Unknown event type: {event.type!r}")

    if event.visibility not in VISIBILITIES:
        raise EventValidationError(f"Unknown visibility: {event.visibility!r}")

    if not event.start_date:
        raise EventValidationError("Start date is required")
    if not is_valid_date(event.start_date):
        raise EventValidationError(f"Invalid start date: {event.start_date!r} (expected YYYY-MM-DD)")

    if event.type == EventType.DATE_RANGE.value:
        if not event.end_date:
            raise EventValidationError("End date is required for a multi-day event")
        if not is_valid_date(event.end_date):
            raise EventValidationError(f"Invalid end date: {event.end_date!r} (expected YYYY-MM-DD)")
        if event.end_date < event.start_date:
            raise EventValidationError("End date must not be before the start date")

    if not event.is_all_day:
        if not event.start_time:
            raise EventValidationError("Start time is required")
        if not is_valid_time(event.start_time):
            raise EventValidationError(f"Invalid start time: {event.start_time!r} (expected HH:MM)")
        if event.end_time:
            if not is_valid_time(event.end_time):
                raise EventValidationError(f"Invalid end time: {event.end_time!r} (expected HH:MM)")
            # Zero-pad so '9:00' and '10:00' compare correctly as strings
            if event.type == EventType.SINGLE_DAY.value and \
                    event.end_time.zfill(5) <= event.start_time.zfill(5):
                raise EventValidationError("End time must be after the start time")

    for index, notification in enumerate(event.notifications or []):
        _validate_notification(index, notification)


def _validate_notification(index: int, notification) -> None:
    if notification.type not in NOTIFICATION_TYPES:
        raise EventValidationError(f"Invalid notification type at index {index}")

    if notification.type == NotificationType.BEFORE.value:
        value = notification.value
        if isinstance(value, bool) or not isinstance(value, int) \
                or not NOTIFICATION_VALUE_MIN <= value <= NOTIFICATION_VALUE_MAX:
            raise EventValidationError(
                f"Invalid notification value at index {index} "
                f"({NOTIFICATION_VALUE_MIN}-{NOTIFICATION_VALUE_MAX})"
            )
        if notification.unit not in NOTIFICATION_UNITS:
            raise EventValidationError(f"Invalid notification unit at index {index}")
