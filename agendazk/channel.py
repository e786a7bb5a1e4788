"""
Publish/subscribe channel used to broadcast event list updates.

Subscribing returns a disposer; calling it removes that one subscription.
"""

from datetime import datetime
from typing import Any, Callable
import sys


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] CHANNEL: {msg}", file=sys.stderr)


class Channel:
    """Synchronous broadcast to a list of subscribers."""

    def __init__(self, name: str = ""):
        self.name = name
        self._subscribers: list[tuple[int, Callable[[Any], None]]] = []
        self._next_token = 0

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """
        Register a subscriber.

        The same callable may be subscribed twice; each subscription has its
        own disposer.

        Returns:
            A function that removes this subscription (safe to call twice).
        """
        token = self._next_token
        self._next_token += 1
        self._subscribers.append((token, callback))

        def dispose() -> None:
            self._subscribers = [s for s in self._subscribers if s[0] != token]

        return dispose

    def publish(self, value: Any) -> None:
        """
        Deliver value to every subscriber, in subscription order.

        A subscriber that raises is logged and the remaining ones still run.
        """
        # Copy so subscribers may dispose themselves while being notified
        for _, callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                _debug_print(f"Subscriber of '{self.name}' raised: {e}")

    def clear(self) -> None:
        self._subscribers = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
