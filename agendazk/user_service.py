"""
Device identity and user profile for AgendaZK.

Every installation gets a stable device id; the user document in the
`users` collection is keyed by that id and owns the events created from this
device.
"""

import json
import random
import string
import sys
from datetime import datetime
from typing import Optional

from .device_storage import KeyValueStorage, StorageError
from .document_store import (
    DocumentStore, DocumentStoreError, Found, SERVER_TIMESTAMP,
)
from .models import User


USERS_COLLECTION = "users"
USER_STORAGE_KEY = "@AgendaZK:user"
DEVICE_ID_KEY = "@AgendaZK:deviceId"

# Used when device storage is unusable, so the identity is never empty
FALLBACK_DEVICE_ID = "device_mgnuaf8p_wr0yggv66"
FALLBACK_SUFFIX = "wr0yggv66"
MAX_DEVICE_ID_LENGTH = 50


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] USER: {msg}", file=sys.stderr)


class UserServiceError(Exception):
    """Raised for user-facing identity errors (empty or duplicate names...)."""


def _random_part(length: int = 9) -> str:
    return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))


class UserService:
    """
    Holds the identity of the current installation.

    State is per instance; create one service per application context.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        store: DocumentStore,
        installation_id: str = "",
    ):
        self._storage = storage
        self._store = store
        self._installation_id = installation_id or "unknown"

        self.current_user: Optional[User] = None
        self.device_id: Optional[str] = None

    # ==================== Device identity ====================

    def get_or_create_device_id(self) -> str:
        """
        Return the stored device id, generating and storing one if needed.

        Falls back to a fixed id when device storage fails, so callers always
        get a usable identity.
        """
        try:
            device_id = self._storage.get_item(DEVICE_ID_KEY)
            if device_id:
                _debug_print(f"Existing device id: {device_id}")
                return device_id

            device_id = f"device_{_random_part()}_{self._installation_id[-8:]}"
            if len(device_id) > MAX_DEVICE_ID_LENGTH:
                device_id = f"device_{_random_part()}_{FALLBACK_SUFFIX}"

            self._storage.set_item(DEVICE_ID_KEY, device_id)
            _debug_print(f"Generated device id: {device_id}")
            return device_id
        except StorageError as e:
            _debug_print(f"Error getting/creating device id: {e}")
            try:
                self._storage.set_item(DEVICE_ID_KEY, FALLBACK_DEVICE_ID)
            except StorageError as storage_error:
                _debug_print(f"Error storing fallback device id: {storage_error}")
            return FALLBACK_DEVICE_ID

    def set_device_id(self, device_id: str) -> str:
        """Force a specific device id (development and migration helper)."""
        self._storage.set_item(DEVICE_ID_KEY, device_id)
        self.device_id = device_id
        _debug_print(f"Device id forced to: {device_id}")
        return device_id

    # ==================== Startup ====================

    def initialize(self) -> tuple[Optional[User], bool]:
        """
        Resolve the current user for this device.

        Returns:
            (user, is_first_time). user is None on a first run, in which case
            the caller should ask for a username and call create_user().
        """
        try:
            self.device_id = self.get_or_create_device_id()

            lookup = self._store.get(USERS_COLLECTION, self.device_id)
            if isinstance(lookup, Found):
                user = User.from_document(lookup.document.data)
                _debug_print(f"Existing user found: {user.username}")
                self.current_user = user
                self._store_user(user)
                self._touch_last_active(user.id)
                return user, False

            stored = self._get_stored_user()
            if stored is not None:
                lookup = self._store.get(USERS_COLLECTION, stored.id)
                if isinstance(lookup, Found):
                    self.current_user = User.from_document(lookup.document.data)
                    self._touch_last_active(self.current_user.id)
                    return self.current_user, False
                # The user was removed remotely; forget the local copy
                self.clear_stored_user()

            _debug_print("No existing user, first launch")
            return None, True
        except (DocumentStoreError, StorageError) as e:
            _debug_print(f"Error initializing user service: {e}")
            return None, True

    # ==================== Profile ====================

    def create_user(self, username: str) -> User:
        """
        Create (or re-create) the user document for this device.

        Raises:
            UserServiceError: if the name is blank or already taken.
        """
        if not username or not username.strip():
            raise UserServiceError("Username cannot be empty")
        trimmed = username.strip()

        if self._username_taken(trimmed):
            raise UserServiceError("This username is already taken")

        if self.device_id is None:
            self.device_id = self.get_or_create_device_id()

        data = User(id=self.device_id, username=trimmed, device_id=self.device_id).to_document()
        data["createdAt"] = SERVER_TIMESTAMP
        data["lastActive"] = SERVER_TIMESTAMP

        try:
            lookup = self._store.get(USERS_COLLECTION, self.device_id)
            if isinstance(lookup, Found):
                self._store.update(USERS_COLLECTION, self.device_id, data)
            else:
                self._store.set(USERS_COLLECTION, self.device_id, data)
            lookup = self._store.get(USERS_COLLECTION, self.device_id)
        except DocumentStoreError as e:
            _debug_print(f"Error creating user: {e}")
            raise

        user = User.from_document(lookup.document.data) if isinstance(lookup, Found) else \
            User(id=self.device_id, username=trimmed, device_id=self.device_id)
        self._store_user(user)
        self.current_user = user
        return user

    def update_username(self, new_username: str) -> User:
        if self.current_user is None:
            raise UserServiceError("No user is logged in")
        if not new_username or not new_username.strip():
            raise UserServiceError("Username cannot be empty")
        trimmed = new_username.strip()

        if self._username_taken(trimmed, exclude_id=self.current_user.id):
            raise UserServiceError("This username is already taken")

        try:
            self._store.update(USERS_COLLECTION, self.current_user.id, {
                "username": trimmed,
                "updatedAt": SERVER_TIMESTAMP,
            })
        except DocumentStoreError as e:
            _debug_print(f"Error updating username: {e}")
            raise

        self.current_user.username = trimmed
        self._store_user(self.current_user)
        return self.current_user

    def get_all_users(self) -> list[User]:
        """All registered users (an empty list if the store cannot be read)."""
        try:
            docs = self._store.query(USERS_COLLECTION)
        except DocumentStoreError as e:
            _debug_print(f"Error getting all users: {e}")
            return []
        return [User.from_document(doc.data) for doc in docs]

    def _username_taken(self, username: str, exclude_id: Optional[str] = None) -> bool:
        lowered = username.lower()
        return any(
            user.username.lower() == lowered and user.id != exclude_id
            for user in self.get_all_users()
        )

    def _touch_last_active(self, user_id: str) -> None:
        try:
            self._store.update(USERS_COLLECTION, user_id, {"lastActive": SERVER_TIMESTAMP})
        except DocumentStoreError as e:
            _debug_print(f"Error updating last active for {user_id}: {e}")

    # ==================== Local cache ====================

    def _store_user(self, user: User) -> None:
        payload = {"id": user.id, "username": user.username, "deviceId": user.device_id}
        try:
            self._storage.set_item(USER_STORAGE_KEY, json.dumps(payload))
        except StorageError as e:
            _debug_print(f"Error storing user: {e}")

    def _get_stored_user(self) -> Optional[User]:
        try:
            raw = self._storage.get_item(USER_STORAGE_KEY)
            return User.from_document(json.loads(raw)) if raw else None
        except (StorageError, ValueError) as e:
            _debug_print(f"Error reading stored user: {e}")
            return None

    def clear_stored_user(self) -> None:
        self._storage.remove_item(USER_STORAGE_KEY)
        self.current_user = None

    def is_logged_in(self) -> bool:
        return self.current_user is not None

    def logout(self) -> bool:
        try:
            self.clear_stored_user()
        except StorageError as e:
            _debug_print(f"Error logging out: {e}")
            return False
        return True
