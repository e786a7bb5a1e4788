"""
Event service for AgendaZK.

Keeps the in-memory event cache that every view reads from. The cache is
never edited locally: it is rebuilt from the owner-scoped and public live
queries each time either of them fires, and published to listeners.
Mutations are validated first and then written to the document store; the
resulting snapshot brings them back into the cache.
"""

import dataclasses
import sys
from datetime import datetime, timedelta
from typing import Callable, Optional

from .channel import Channel
from .date_utils import DateLike, to_iso_date
from .document_store import (
    DocumentStore, Filter, SERVER_TIMESTAMP, Document,
)
from .event_merge import EventStreamMerger
from .models import Event, EventType, Visibility, NotificationType
from .notifications import calculate_notification_time, event_datetime
from .user_service import UserService
from .validation import validate_event_data


EVENTS_COLLECTION = "events"


def _debug_print(message: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] EVENTS: {message}", file=sys.stderr)


class EventServiceError(Exception):
    """Base class for refused event operations."""


class NotLoggedInError(EventServiceError):
    def __init__(self):
        super().__init__("No user is logged in")


class EventNotFoundError(EventServiceError):
    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class PermissionDeniedError(EventServiceError):
    def __init__(self, event_id: str, action: str):
        super().__init__(f"You are not allowed to {action} this event")
        self.event_id = event_id


class EventService:
    """
    Event cache plus validated create/update/delete.

    Listeners registered with add_listener() receive the full, sorted event
    list after every change from either live query.
    """

    def __init__(
        self,
        store: DocumentStore,
        user_service: UserService,
        timezone_name: Optional[str] = None,
    ):
        self._store = store
        self._users = user_service
        self._timezone_name = timezone_name

        self._events: list[Event] = []
        self._channel = Channel("events")
        self._merger = EventStreamMerger(on_merged=self._on_merged)
        self._unsubscribers: list[Callable[[], None]] = []

    # ==================== Live queries ====================

    def initialize(self) -> bool:
        """
        Start listening to the owner-scoped and public queries.

        Returns:
            False when no user is logged in (nothing is subscribed).
        """
        user = self._users.current_user
        if user is None:
            _debug_print("Event service initialized without a logged in user")
            return False

        self.cleanup_subscriptions()
        self._merger.reset()

        self._unsubscribers.append(self._store.subscribe(
            EVENTS_COLLECTION,
            (Filter("ownerUid", "==", user.id),),
            lambda docs: self._merger.update_owner(self._to_events(docs)),
            on_error=lambda e: _debug_print(f"Error listening to own events: {e}"),
            order_by="startDate",
        ))
        self._unsubscribers.append(self._store.subscribe(
            EVENTS_COLLECTION,
            (Filter("visibility", "==", Visibility.PUBLIC.value),),
            lambda docs: self._merger.update_public(self._to_events(docs)),
            on_error=lambda e: _debug_print(f"Error listening to public events: {e}"),
            order_by="startDate",
        ))
        return True

    @staticmethod
    def _to_events(docs: list[Document]) -> list[Event]:
        return [Event.from_document(doc.id, doc.data) for doc in docs]

    def _on_merged(self, events: list[Event]) -> None:
        self._events = events
        self._channel.publish(list(events))

    def add_listener(self, callback: Callable[[list[Event]], None]) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        return self._channel.subscribe(callback)

    def cleanup_subscriptions(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def cleanup(self) -> None:
        """Stop both live queries and drop every listener."""
        self.cleanup_subscriptions()
        self._channel.clear()

    # ==================== Mutations ====================

    def _require_user(self):
        user = self._users.current_user
        if user is None:
            raise NotLoggedInError()
        return user

    def _require_owned(self, event_id: str, action: str) -> Event:
        user = self._require_user()
        existing = self.get_event_by_id(event_id)
        if existing is None:
            raise EventNotFoundError(event_id)
        if existing.owner_uid != user.id:
            raise PermissionDeniedError(event_id, action)
        return existing

    @staticmethod
    def _normalized(event: Event) -> Event:
        """Copy of event with defaults applied, as it will be stored."""
        return dataclasses.replace(
            event,
            title=event.title.strip(),
            type=event.type or EventType.SINGLE_DAY.value,
            end_date=event.end_date or None,
            start_time=event.start_time or None,
            end_time=event.end_time or None,
            is_all_day=bool(event.is_all_day),
            visibility=event.visibility or Visibility.PUBLIC.value,
            notifications=list(event.notifications or []),
        )

    def create_event(self, event: Event) -> Event:
        """
        Validate and store a new event owned by the current user.

        Returns:
            The stored event, with its new id.
        """
        user = self._require_user()
        validate_event_data(event)

        new_event = dataclasses.replace(self._normalized(event), id=None, owner_uid=user.id)
        data = new_event.to_document()
        data["createdAt"] = SERVER_TIMESTAMP
        data["updatedAt"] = SERVER_TIMESTAMP

        try:
            event_id = self._store.add(EVENTS_COLLECTION, data)
        except Exception as e:
            _debug_print(f"Error creating event: {e}")
            raise

        _debug_print(f"Created event {event_id}: {new_event.title}")
        return dataclasses.replace(new_event, id=event_id)

    def update_event(self, event_id: str, event: Event) -> Event:
        """Validate and overwrite the user-editable fields of an owned event."""
        existing = self._require_owned(event_id, "modify")
        validate_event_data(event)

        updated = dataclasses.replace(
            self._normalized(event),
            id=event_id,
            owner_uid=existing.owner_uid,
            created_at=existing.created_at,
            updated_at=None,
        )
        data = updated.to_document()
        data.pop("ownerUid")
        data.pop("createdAt", None)
        data["updatedAt"] = SERVER_TIMESTAMP

        try:
            self._store.update(EVENTS_COLLECTION, event_id, data)
        except Exception as e:
            _debug_print(f"Error updating event {event_id}: {e}")
            raise

        return updated

    def delete_event(self, event_id: str) -> bool:
        self._require_owned(event_id, "delete")
        try:
            self._store.delete(EVENTS_COLLECTION, event_id)
        except Exception as e:
            _debug_print(f"Error deleting event {event_id}: {e}")
            raise
        return True

    # ==================== Queries ====================

    def get_events(self) -> list[Event]:
        return list(self._events)

    def get_event_by_id(self, event_id: str) -> Optional[Event]:
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    def get_events_by_date(self, day: DateLike) -> list[Event]:
        """Events occurring on a day; date ranges match inclusively."""
        target = to_iso_date(day)
        matches = []
        for event in self._events:
            if event.is_date_range:
                if event.start_date <= target <= event.last_date:
                    matches.append(event)
            elif event.start_date == target:
                matches.append(event)
        return matches

    def get_events_by_date_range(self, start: DateLike, end: DateLike) -> list[Event]:
        """Events overlapping [start, end]."""
        first = to_iso_date(start)
        last = to_iso_date(end)
        return [
            event for event in self._events
            if not (event.last_date < first or event.start_date > last)
        ]

    def get_public_events(self) -> list[Event]:
        return [e for e in self._events if e.is_public]

    def get_current_user_events(self) -> list[Event]:
        user = self._users.current_user
        if user is None:
            return []
        return [e for e in self._events if e.owner_uid == user.id]

    def search_events(self, query: str) -> list[Event]:
        """Case-insensitive title search; a blank query finds nothing."""
        if not query or not query.strip():
            return []
        term = query.strip().lower()
        return [e for e in self._events if term in e.title.lower()]

    def get_events_with_notifications(
        self,
        target: datetime,
        tolerance: timedelta = timedelta(minutes=1),
    ) -> list[tuple[Event, object, datetime]]:
        """
        Reminders due around a given instant.

        Returns:
            (event, notification, trigger time) for every reminder whose
            trigger lies strictly within tolerance of target.
        """
        due = []
        for event in self._events:
            for notification in event.notifications:
                if notification.type not in (NotificationType.AT_EVENT.value, NotificationType.BEFORE.value):
                    continue
                start = event_datetime(event, self._timezone_name)
                trigger = calculate_notification_time(start, notification)
                if abs(target - trigger) < tolerance:
                    due.append((event, notification, trigger))
        return due
