"""Shared fixtures: an in-memory store, device storage and two co-users."""
from datetime import datetime

import pytest
import pytz

from agendazk.device_storage import MemoryKeyValueStorage
from agendazk.document_store import MemoryDocumentStore
from agendazk.event_service import EventService
from agendazk.models import Event, NotificationSpec
from agendazk.user_service import UserService


FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=pytz.UTC)


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryDocumentStore:
    return MemoryDocumentStore(clock=clock)


def make_user_service(store: MemoryDocumentStore, device_id: str, username: str) -> UserService:
    users = UserService(MemoryKeyValueStorage(), store)
    users.set_device_id(device_id)
    users.create_user(username)
    return users


@pytest.fixture
def alice(store: MemoryDocumentStore) -> UserService:
    return make_user_service(store, "device_alice", "alice")


@pytest.fixture
def bob(store: MemoryDocumentStore) -> UserService:
    return make_user_service(store, "device_bob", "bob")


@pytest.fixture
def alice_events(store: MemoryDocumentStore, alice: UserService) -> EventService:
    service = EventService(store, alice, timezone_name="UTC")
    assert service.initialize()
    yield service
    service.cleanup()


@pytest.fixture
def bob_events(store: MemoryDocumentStore, bob: UserService) -> EventService:
    service = EventService(store, bob, timezone_name="UTC")
    assert service.initialize()
    yield service
    service.cleanup()


def make_event(**overrides) -> Event:
    """A valid timed single-day event, with field overrides."""
    fields = dict(
        title="Dentist",
        start_date="2024-06-10",
        start_time="09:00",
        end_time="10:00",
    )
    fields.update(overrides)
    return Event(**fields)


def before(value: int, unit: str) -> NotificationSpec:
    return NotificationSpec.before(value, unit)
