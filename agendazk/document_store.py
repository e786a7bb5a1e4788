"""
Document store for AgendaZK.

Abstract base class for the cloud-style document database the agenda talks
to, plus an in-memory implementation and a JSON file-backed one. The
interface mirrors what the agenda needs from a managed document database:
keyed documents grouped in collections, equality/range queries, live query
subscriptions and server-assigned timestamps.
"""

import copy
import json
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union
import sys

import pytz


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] STORE: {msg}", file=sys.stderr)


class _ServerTimestamp:
    """Placeholder replaced by the store's clock when a document is written."""

    def __repr__(self):
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class DocumentStoreError(Exception):
    """Base class for document store failures."""


class DocumentNotFoundError(DocumentStoreError):
    """Raised when updating a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"No document '{doc_id}' in collection '{collection}'")
        self.collection = collection
        self.doc_id = doc_id


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


@dataclass(frozen=True)
class Filter:
    """A single field condition, e.g. Filter('visibility', '==', 'public')."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op!r}")

    def matches(self, data: dict) -> bool:
        if self.field not in data:
            # Missing fields only satisfy inequality
            return self.op == "!="
        return _OPERATORS[self.op](data[self.field], self.value)


@dataclass
class Document:
    """A document snapshot: its id and a copy of its fields."""
    id: str
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Found:
    document: Document


@dataclass(frozen=True)
class NotFound:
    collection: str
    doc_id: str


Lookup = Union[Found, NotFound]

SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]


class DocumentStore(ABC):
    """
    Abstract base class for document databases.

    Implementations deliver live query snapshots synchronously or from their
    own event loop; callers must not assume either.
    """

    @abstractmethod
    def add(self, collection: str, data: dict) -> str:
        """Create a document with a store-assigned id and return the id."""
        pass

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: dict) -> None:
        """Create or replace the document with the given id."""
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: dict) -> None:
        """Merge fields into an existing document (DocumentNotFoundError if missing)."""
        pass

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; deleting a missing document is not an error."""
        pass

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Lookup:
        """Read one document, returning Found or NotFound."""
        pass

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: tuple[Filter, ...] = (),
        order_by: Optional[str] = None,
    ) -> list[Document]:
        """Run a one-shot query."""
        pass

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        filters: tuple[Filter, ...],
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        order_by: Optional[str] = None,
    ) -> Callable[[], None]:
        """
        Subscribe to a live query.

        on_snapshot receives the full result set at once and again after
        every change. After an error on_error is called once and no further
        snapshots are delivered.

        Returns:
            A function that cancels the subscription.
        """
        pass


@dataclass
class _Listener:
    collection: str
    filters: tuple[Filter, ...]
    on_snapshot: SnapshotCallback
    on_error: Optional[ErrorCallback]
    order_by: Optional[str]


class MemoryDocumentStore(DocumentStore):
    """
    Document store kept entirely in memory.

    Snapshots are delivered synchronously, inside the call that changed the
    collection.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._collections: dict[str, dict[str, dict]] = {}
        self._listeners: dict[int, _Listener] = {}
        self._next_listener = 0
        self._clock = clock or (lambda: datetime.now(pytz.UTC))

    # ==================== Writes ====================

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        docs = dict(self._collections.get(collection, {}))
        docs[doc_id] = self._resolve(data)
        self._commit(collection, docs)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        docs = dict(self._collections.get(collection, {}))
        docs[doc_id] = self._resolve(data)
        self._commit(collection, docs)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        docs = dict(self._collections.get(collection, {}))
        if doc_id not in docs:
            raise DocumentNotFoundError(collection, doc_id)
        merged = dict(docs[doc_id])
        merged.update(self._resolve(data))
        docs[doc_id] = merged
        self._commit(collection, docs)

    def delete(self, collection: str, doc_id: str) -> None:
        docs = dict(self._collections.get(collection, {}))
        if docs.pop(doc_id, None) is None:
            return
        self._commit(collection, docs)

    def _resolve(self, data: dict) -> dict:
        """Deep copy data, replacing SERVER_TIMESTAMP placeholders."""
        now = self._clock()
        resolved = {}
        for key, value in data.items():
            if value is SERVER_TIMESTAMP:
                resolved[key] = now
            else:
                resolved[key] = copy.deepcopy(value)
        return resolved

    def _commit(self, collection: str, docs: dict[str, dict]) -> None:
        self._write(collection, docs)
        self._collections[collection] = docs
        self._dispatch(collection)

    def _write(self, collection: str, docs: dict[str, dict]) -> None:
        """Persist a collection before it becomes visible. No-op in memory."""
        pass

    # ==================== Reads ====================

    def get(self, collection: str, doc_id: str) -> Lookup:
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return NotFound(collection, doc_id)
        return Found(Document(doc_id, copy.deepcopy(data)))

    def query(
        self,
        collection: str,
        filters: tuple[Filter, ...] = (),
        order_by: Optional[str] = None,
    ) -> list[Document]:
        docs = [
            Document(doc_id, copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
            if all(f.matches(data) for f in filters)
        ]
        if order_by:
            # Documents without the field sort first
            docs.sort(key=lambda d: (order_by in d.data, d.data.get(order_by)))
        return docs

    # ==================== Live queries ====================

    def subscribe(
        self,
        collection: str,
        filters: tuple[Filter, ...],
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        order_by: Optional[str] = None,
    ) -> Callable[[], None]:
        token = self._next_listener
        self._next_listener += 1
        listener = _Listener(collection, tuple(filters), on_snapshot, on_error, order_by)
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        self._deliver(token, listener)
        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _dispatch(self, collection: str) -> None:
        for token, listener in list(self._listeners.items()):
            if listener.collection == collection and token in self._listeners:
                self._deliver(token, listener)

    def _deliver(self, token: int, listener: _Listener) -> None:
        try:
            docs = self.query(listener.collection, listener.filters, listener.order_by)
        except Exception as e:
            # A failed live query is detached, as a managed database would do
            _debug_print(f"Live query on '{listener.collection}' failed: {e}")
            self._listeners.pop(token, None)
            if listener.on_error:
                listener.on_error(e)
            return
        try:
            listener.on_snapshot(docs)
        except Exception as e:
            # Listener errors stay with the listener; the write has happened
            _debug_print(f"Snapshot listener on '{listener.collection}' raised: {e}")


class JsonDocumentStore(MemoryDocumentStore):
    """
    JSON file-backed document store.

    Structure:
    - {storage_dir}/{collection}.json - all documents of one collection
    """

    def __init__(self, storage_dir: Path, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(clock=clock)
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._load()
        _debug_print(f"Initialized JSON storage at {self.storage_dir}")

    def _collection_file(self, collection: str) -> Path:
        # Replace characters that are problematic in filenames
        return self.storage_dir / (collection.replace(":", "_").replace("/", "_") + ".json")

    def _load(self) -> None:
        for file_path in sorted(self.storage_dir.glob("*.json")):
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f, object_hook=_decode_value)
            except (OSError, ValueError) as e:
                raise DocumentStoreError(f"Cannot read {file_path}: {e}") from e
            collection = data.get("collection", file_path.stem)
            self._collections[collection] = data.get("documents", {})
            _debug_print(f"Loaded {len(self._collections[collection])} documents from {collection}")

    def _write(self, collection: str, docs: dict[str, dict]) -> None:
        file_path = self._collection_file(collection)
        payload = {
            "collection": collection,
            "updated": datetime.now(pytz.UTC).isoformat(),
            "documents": docs,
        }
        tmp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False, default=_encode_value)
            os.replace(tmp_path, file_path)
        except (OSError, TypeError) as e:
            _debug_print(f"Error saving collection {collection}: {e}")
            raise DocumentStoreError(f"Cannot write {file_path}: {e}") from e


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$datetime": value.isoformat()}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def _decode_value(data: dict) -> Any:
    if len(data) == 1 and "$datetime" in data:
        return datetime.fromisoformat(data["$datetime"])
    return data


def get_default_storage_dir() -> Path:
    """Get the default storage directory respecting XDG."""
    xdg_data = os.environ.get('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
    return Path(xdg_data) / 'agendazk' / 'documents'


def create_document_store(backend: str = "json", storage_dir: Optional[Path] = None) -> DocumentStore:
    """Factory function to create a document store."""
    if backend == "memory":
        return MemoryDocumentStore()
    if storage_dir is None:
        storage_dir = get_default_storage_dir()
    return JsonDocumentStore(storage_dir)
