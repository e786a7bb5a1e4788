"""
Qt notification backend - fires scheduled reminders from the Qt event loop.

Each scheduled reminder is a single-shot QTimer owned by the backend.
Delivery happens through a Qt signal emitted on the thread running the loop.
"""

from datetime import datetime
from typing import Callable, Optional
import sys
import uuid

import pytz
from PySide6.QtCore import QObject, QTimer, Signal

from .notifications import NotificationBackend, NotificationContent


# QTimer intervals are signed 32-bit milliseconds (about 24.8 days)
MAX_TIMER_INTERVAL_MS = 2**31 - 1


class QtNotificationBackend(QObject):
    """
    Notification backend driven by QTimer.

    Registered as a virtual NotificationBackend: QObject's metaclass cannot
    be combined with ABCMeta. Reminders further away than a single timer
    can wait are re-armed in steps until they are due.
    """

    # Signal emitted when a reminder is due
    # Args: (notification_id: str, content: NotificationContent)
    notification_fired = Signal(str, object)

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, parent=None):
        super().__init__(parent)
        self._clock = clock or (lambda: datetime.now(pytz.UTC))
        self._timers: dict[str, QTimer] = {}
        self._pending: dict[str, tuple[datetime, NotificationContent]] = {}

    def request_permissions(self) -> bool:
        return True

    def schedule(self, trigger: datetime, content: NotificationContent) -> str:
        notification_id = str(uuid.uuid4())
        self._pending[notification_id] = (trigger, content)
        self._arm(notification_id)
        return notification_id

    def _arm(self, notification_id: str) -> None:
        trigger, _ = self._pending[notification_id]
        delay_ms = int((trigger - self._clock()).total_seconds() * 1000)
        delay_ms = max(0, min(delay_ms, MAX_TIMER_INTERVAL_MS))

        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.timeout.connect(lambda: self._on_timeout(notification_id))
        self._timers[notification_id] = timer
        timer.start(delay_ms)

    def _on_timeout(self, notification_id: str) -> None:
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.deleteLater()
        if notification_id not in self._pending:
            return

        trigger, content = self._pending[notification_id]
        if trigger > self._clock():
            # Long wait split over several timers
            self._arm(notification_id)
            return

        del self._pending[notification_id]
        print(f"DEBUG QtNotificationBackend: firing '{content.title}'", file=sys.stderr)
        self.notification_fired.emit(notification_id, content)

    def cancel(self, notification_id: str) -> None:
        self._pending.pop(notification_id, None)
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def cancel_all(self) -> None:
        for notification_id in list(self._pending):
            self.cancel(notification_id)

    def is_pending(self, notification_id: str) -> bool:
        return notification_id in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)


NotificationBackend.register(QtNotificationBackend)
