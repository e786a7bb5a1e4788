"""
AgendaZK core module

Shared agenda for two co-users:
- Configuration parsing (config.py)
- Event, reminder and user model (models.py)
- Event validation (validation.py)
- Document store interface and local implementations (document_store.py)
- Device identity and user profile (user_service.py)
- Merge of the owner-scoped and public event streams (event_merge.py)
- Event cache, queries and mutations (event_service.py)
- Reminder trigger times and scheduling (notifications.py)
- iCalendar export (ics_export.py)
"""

from .config import Config
from .models import Event, NotificationSpec, User, EventType, Visibility
from .validation import EventValidationError, validate_event_data
from .document_store import (
    DocumentStore, MemoryDocumentStore, JsonDocumentStore, Found, NotFound,
)
from .device_storage import KeyValueStorage, MemoryKeyValueStorage, JsonKeyValueStorage
from .user_service import UserService, UserServiceError
from .event_merge import EventStreamMerger, merge_event_streams
from .event_service import EventService, EventServiceError
from .notifications import (
    NotificationService, NotificationBackend, MemoryNotificationBackend,
    calculate_notification_time,
)

__all__ = [
    'Config',
    'Event',
    'NotificationSpec',
    'User',
    'EventType',
    'Visibility',
    'EventValidationError',
    'validate_event_data',
    'DocumentStore',
    'MemoryDocumentStore',
    'JsonDocumentStore',
    'Found',
    'NotFound',
    'KeyValueStorage',
    'MemoryKeyValueStorage',
    'JsonKeyValueStorage',
    'UserService',
    'UserServiceError',
    'EventStreamMerger',
    'merge_event_streams',
    'EventService',
    'EventServiceError',
    'NotificationService',
    'NotificationBackend',
    'MemoryNotificationBackend',
    'calculate_notification_time',
]
