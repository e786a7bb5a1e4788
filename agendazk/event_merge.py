"""
Merge of the two live event streams.

The agenda listens to two queries on the events collection: the events owned
by the current user (any visibility) and the public events (any owner). Both
deliver their full result set on every change. The merger keeps the latest
snapshot of each stream and rebuilds the visible list from scratch each time.
"""

from typing import Callable, Iterable, Optional

from .models import Event


class EventStreamMerger:
    """
    Combine owner-scoped and public snapshots into one sorted event list.

    On an id present in both streams the owner-scoped record wins, whatever
    order the snapshots arrived in. The result is sorted by start_date
    (string order), ties keeping owner records first and then arrival order.
    """

    def __init__(self, on_merged: Optional[Callable[[list[Event]], None]] = None):
        self._owner: dict[str, Event] = {}
        self._public: dict[str, Event] = {}
        self._on_merged = on_merged
        self._merged: list[Event] = []

    @property
    def events(self) -> list[Event]:
        return list(self._merged)

    def update_owner(self, events: Iterable[Event]) -> list[Event]:
        """Replace the owner-scoped snapshot and rebuild."""
        self._owner = {e.id: e for e in events}
        return self._rebuild()

    def update_public(self, events: Iterable[Event]) -> list[Event]:
        """Replace the public snapshot and rebuild."""
        self._public = {e.id: e for e in events}
        return self._rebuild()

    def reset(self) -> None:
        self._owner = {}
        self._public = {}
        self._merged = []

    def _rebuild(self) -> list[Event]:
        combined = dict(self._owner)
        for event_id, event in self._public.items():
            if event_id not in combined:
                combined[event_id] = event

        # sorted() is stable, so equal dates keep insertion order
        self._merged = sorted(combined.values(), key=lambda e: e.start_date or "")
        if self._on_merged:
            self._on_merged(list(self._merged))
        return list(self._merged)


def merge_event_streams(owner_events: Iterable[Event], public_events: Iterable[Event]) -> list[Event]:
    """One-shot merge of two snapshots with owner precedence."""
    merger = EventStreamMerger()
    merger.update_owner(owner_events)
    return merger.update_public(public_events)
