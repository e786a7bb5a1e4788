"""
Data model for AgendaZK events, reminders and users.

Events are held as plain dataclasses in memory and travel to the document
store in their document form, which keeps the camelCase field names the
shared agenda has always used (startDate, isAllDay, ownerUid, ...).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class EventType(Enum):
    """How an event occupies the calendar."""
    SINGLE_DAY = "single_day"
    DATE_RANGE = "date_range"


class Visibility(Enum):
    """Who can see an event besides its owner."""
    PUBLIC = "public"
    PRIVATE = "private"


class NotificationType(Enum):
    """When a reminder fires relative to its event."""
    AT_EVENT = "at_event"
    BEFORE = "before"


class NotificationUnit(Enum):
    """Units accepted by 'before' reminders."""
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"


UNIT_MILLISECONDS = {
    NotificationUnit.MINUTES.value: 60 * 1000,
    NotificationUnit.HOURS.value: 60 * 60 * 1000,
    NotificationUnit.DAYS.value: 24 * 60 * 60 * 1000,
    NotificationUnit.WEEKS.value: 7 * 24 * 60 * 60 * 1000,
}

NOTIFICATION_VALUE_MIN = 1
NOTIFICATION_VALUE_MAX = 100


@dataclass
class NotificationSpec:
    """
    A reminder attached to an event.

    Fields are kept as raw values so that a malformed spec coming from a user
    form or a stored document can still be represented and rejected by
    validation with a useful message.
    """
    type: str = NotificationType.AT_EVENT.value
    value: Optional[int] = None
    unit: Optional[str] = None

    @classmethod
    def at_event(cls) -> 'NotificationSpec':
        return cls(type=NotificationType.AT_EVENT.value)

    @classmethod
    def before(cls, value: int, unit: str) -> 'NotificationSpec':
        return cls(type=NotificationType.BEFORE.value, value=value, unit=unit)

    @property
    def key(self) -> str:
        """Stable identifier of this reminder within its event."""
        return f"{self.type}_{self.value or 'at_event'}_{self.unit or ''}"

    def to_document(self) -> dict:
        data: dict[str, Any] = {"type": self.type}
        if self.type == NotificationType.BEFORE.value:
            data["value"] = self.value
            data["unit"] = self.unit
        return data

    @classmethod
    def from_document(cls, data: dict) -> 'NotificationSpec':
        return cls(
            type=data.get("type"),
            value=data.get("value"),
            unit=data.get("unit"),
        )


@dataclass
class Event:
    """
    A calendar event.

    start_date/end_date are ISO 'YYYY-MM-DD' strings and start_time/end_time
    'HH:MM' strings, so plain string comparison orders them chronologically.
    """
    title: str
    start_date: Optional[str]
    type: str = EventType.SINGLE_DAY.value
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_all_day: bool = False
    visibility: str = Visibility.PUBLIC.value
    notifications: list[NotificationSpec] = field(default_factory=list)

    # Assigned by the service / store
    id: Optional[str] = None
    owner_uid: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_date_range(self) -> bool:
        return self.type == EventType.DATE_RANGE.value

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.PUBLIC.value

    @property
    def last_date(self) -> str:
        """Last calendar day covered by the event."""
        if self.is_date_range and self.end_date:
            return self.end_date
        return self.start_date

    def input_fields(self) -> dict:
        """The fields a user supplies when creating or editing an event."""
        return {
            "title": self.title,
            "type": self.type,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "is_all_day": self.is_all_day,
            "visibility": self.visibility,
            "notifications": [n.to_document() for n in self.notifications],
        }

    def to_document(self) -> dict:
        """Document form, without the id (the id is the document key)."""
        data = {
            "title": self.title,
            "type": self.type,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "isAllDay": self.is_all_day,
            "visibility": self.visibility,
            "notifications": [n.to_document() for n in self.notifications],
            "ownerUid": self.owner_uid,
        }
        if self.created_at is not None:
            data["createdAt"] = self.created_at
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_document(cls, doc_id: Optional[str], data: dict) -> 'Event':
        return cls(
            id=doc_id,
            title=data.get("title", ""),
            type=data.get("type") or EventType.SINGLE_DAY.value,
            start_date=data.get("startDate"),
            end_date=data.get("endDate"),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            is_all_day=bool(data.get("isAllDay", False)),
            visibility=data.get("visibility") or Visibility.PUBLIC.value,
            notifications=[
                NotificationSpec.from_document(n) for n in data.get("notifications") or []
            ],
            owner_uid=data.get("ownerUid"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def __repr__(self):
        return f"Event(id={self.id!r}, title={self.title!r}, start_date={self.start_date!r})"


@dataclass
class User:
    """A device-scoped identity; the user id is the device id."""
    id: str
    username: str
    device_id: str
    created_at: Optional[datetime] = None
    last_active: Optional[datetime] = None

    def to_document(self) -> dict:
        data = {
            "id": self.id,
            "username": self.username,
            "deviceId": self.device_id,
        }
        if self.created_at is not None:
            data["createdAt"] = self.created_at
        if self.last_active is not None:
            data["lastActive"] = self.last_active
        return data

    @classmethod
    def from_document(cls, data: dict) -> 'User':
        return cls(
            id=data.get("id") or data.get("deviceId"),
            username=data.get("username", ""),
            device_id=data.get("deviceId") or data.get("id"),
            created_at=data.get("createdAt"),
            last_active=data.get("lastActive"),
        )
