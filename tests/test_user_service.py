"""Tests for device identity and the user profile."""
import json
import re

import pytest

from agendazk.device_storage import JsonKeyValueStorage, MemoryKeyValueStorage, StorageError
from agendazk.document_store import Found, MemoryDocumentStore, NotFound
from agendazk.user_service import (
    DEVICE_ID_KEY,
    FALLBACK_DEVICE_ID,
    USER_STORAGE_KEY,
    USERS_COLLECTION,
    UserService,
    UserServiceError,
)


class BrokenStorage(MemoryKeyValueStorage):
    def get_item(self, key):
        raise StorageError("storage unavailable")

    def set_item(self, key, value):
        raise StorageError("storage unavailable")


def test_generated_device_id_format() -> None:
    storage = MemoryKeyValueStorage()
    service = UserService(storage, MemoryDocumentStore(), installation_id="install-0123456789ab")

    device_id = service.get_or_create_device_id()

    assert re.fullmatch(r"device_[a-z0-9]{9}_456789ab", device_id)
    assert storage.get_item(DEVICE_ID_KEY) == device_id


def test_stored_device_id_is_reused() -> None:
    storage = MemoryKeyValueStorage({DEVICE_ID_KEY: "device_known"})
    service = UserService(storage, MemoryDocumentStore())
    assert service.get_or_create_device_id() == "device_known"


def test_storage_failure_falls_back_to_fixed_id(capsys) -> None:
    service = UserService(BrokenStorage(), MemoryDocumentStore())

    assert service.get_or_create_device_id() == FALLBACK_DEVICE_ID
    assert "storage unavailable" in capsys.readouterr().err


def test_first_launch_reports_first_time() -> None:
    service = UserService(MemoryKeyValueStorage(), MemoryDocumentStore())

    user, first_time = service.initialize()

    assert user is None
    assert first_time
    assert service.device_id is not None
    assert not service.is_logged_in()


def test_create_user_is_keyed_by_device_id(store) -> None:
    service = UserService(MemoryKeyValueStorage(), store)
    service.set_device_id("device_phone")

    user = service.create_user("  Zoé ")

    assert (user.id, user.username, user.device_id) == ("device_phone", "Zoé", "device_phone")
    lookup = store.get(USERS_COLLECTION, "device_phone")
    assert isinstance(lookup, Found)
    assert lookup.document.data["username"] == "Zoé"
    assert service.is_logged_in()


def test_returning_device_finds_its_user(store, clock) -> None:
    storage = MemoryKeyValueStorage()
    first = UserService(storage, store)
    first.set_device_id("device_phone")
    first.create_user("alice")

    clock.now = clock.now.replace(hour=18)
    again = UserService(storage, store)
    user, first_time = again.initialize()

    assert not first_time
    assert user.username == "alice"
    assert store.get(USERS_COLLECTION, "device_phone").document.data["lastActive"] == clock.now


def test_cached_user_is_used_when_device_id_changed(store) -> None:
    storage = MemoryKeyValueStorage()
    first = UserService(storage, store)
    first.set_device_id("device_old")
    first.create_user("alice")

    storage.set_item(DEVICE_ID_KEY, "device_new")
    user, first_time = UserService(storage, store).initialize()

    assert not first_time
    assert user.id == "device_old"


def test_cached_user_removed_remotely_is_forgotten(store) -> None:
    storage = MemoryKeyValueStorage({
        DEVICE_ID_KEY: "device_new",
        USER_STORAGE_KEY: json.dumps({"id": "device_gone", "username": "ghost", "deviceId": "device_gone"}),
    })
    service = UserService(storage, store)

    user, first_time = service.initialize()

    assert (user, first_time) == (None, True)
    assert storage.get_item(USER_STORAGE_KEY) is None


@pytest.mark.parametrize("name", ["", "   "])
def test_blank_username_rejected(store, name) -> None:
    with pytest.raises(UserServiceError, match="empty"):
        UserService(MemoryKeyValueStorage(), store).create_user(name)


def test_username_unique_ignoring_case(store, alice) -> None:
    with pytest.raises(UserServiceError, match="already taken"):
        UserService(MemoryKeyValueStorage(), store).create_user("ALICE")


def test_update_username(store, alice, bob) -> None:
    with pytest.raises(UserServiceError, match="already taken"):
        alice.update_username("Bob")

    # Renaming to a different case of one's own name is allowed
    assert alice.update_username("Alice").username == "Alice"
    assert store.get(USERS_COLLECTION, "device_alice").document.data["username"] == "Alice"


def test_get_all_users(alice, bob) -> None:
    assert sorted(u.username for u in alice.get_all_users()) == ["alice", "bob"]


def test_logout_clears_local_user(store, alice) -> None:
    assert alice.logout()
    assert not alice.is_logged_in()
    # The remote profile is untouched
    assert not isinstance(store.get(USERS_COLLECTION, "device_alice"), NotFound)


def test_json_device_storage_survives_restart(tmp_path) -> None:
    path = tmp_path / "device.json"
    storage = JsonKeyValueStorage(path)
    storage.set_item(DEVICE_ID_KEY, "device_phone")
    storage.remove_item("absent")

    again = JsonKeyValueStorage(path)
    assert again.get_item(DEVICE_ID_KEY) == "device_phone"
    again.remove_item(DEVICE_ID_KEY)
    assert storage.get_item(DEVICE_ID_KEY) is None


def test_json_device_storage_corrupt_file(tmp_path) -> None:
    path = tmp_path / "device.json"
    path.write_text("not json", encoding="utf-8")
    with pytest.raises(StorageError):
        JsonKeyValueStorage(path).get_item(DEVICE_ID_KEY)
