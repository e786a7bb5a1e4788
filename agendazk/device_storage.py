"""
Device key/value storage.

Small string-to-string persistence used for the device identity and the
locally cached user profile.
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class StorageError(Exception):
    """Raised when the device storage cannot be read or written."""


class KeyValueStorage(ABC):
    """Abstract base class for device storage backends."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is unset."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass


class MemoryKeyValueStorage(KeyValueStorage):
    """Storage that lives as long as the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonKeyValueStorage(KeyValueStorage):
    """
    Storage persisted as a single JSON object on disk.

    The file is re-read on every access so that several processes sharing a
    data directory see each other's writes.
    """

    def __init__(self, file_path: Path):
        self._file = Path(file_path)

    def _read(self) -> dict[str, str]:
        if not self._file.exists():
            return {}
        try:
            with open(self._file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read device storage {self._file}: {e}") from e

    def _save(self, items: dict[str, str]) -> None:
        try:
            self._file.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._file.with_suffix(".tmp")
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(items, f, indent=2)
            os.replace(tmp_path, self._file)
        except OSError as e:
            raise StorageError(f"Cannot write device storage {self._file}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = value
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._read()
        if items.pop(key, None) is not None:
            self._save(items)
