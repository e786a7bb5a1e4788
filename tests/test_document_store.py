"""Tests for the in-memory and JSON document stores."""
import json
from datetime import datetime

import pytest
import pytz

from agendazk.document_store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStoreError,
    Filter,
    Found,
    JsonDocumentStore,
    MemoryDocumentStore,
    NotFound,
    create_document_store,
)


def test_get_returns_found_or_not_found(store) -> None:
    doc_id = store.add("events", {"title": "Dentist"})

    lookup = store.get("events", doc_id)
    assert isinstance(lookup, Found)
    assert lookup.document.id == doc_id
    assert lookup.document.data == {"title": "Dentist"}

    assert store.get("events", "nope") == NotFound("events", "nope")
    assert isinstance(store.get("other", doc_id), NotFound)


def test_reads_are_copies(store) -> None:
    store.set("events", "e1", {"tags": ["a"]})
    store.get("events", "e1").document.data["tags"].append("b")
    assert store.get("events", "e1").document.data == {"tags": ["a"]}


def test_server_timestamp_uses_store_clock(store, clock) -> None:
    store.set("users", "u1", {"createdAt": SERVER_TIMESTAMP})
    assert store.get("users", "u1").document.data["createdAt"] == clock.now


def test_update_merges_and_requires_existing_document(store) -> None:
    store.set("users", "u1", {"username": "alice", "deviceId": "u1"})
    store.update("users", "u1", {"username": "Alice"})
    assert store.get("users", "u1").document.data == {"username": "Alice", "deviceId": "u1"}

    with pytest.raises(DocumentNotFoundError):
        store.update("users", "missing", {"username": "x"})


def test_delete_missing_document_is_noop(store) -> None:
    store.delete("events", "missing")
    assert store.query("events") == []


def test_query_filters_and_orders(store) -> None:
    store.set("events", "a", {"ownerUid": "alice", "visibility": "private", "startDate": "2024-06-03"})
    store.set("events", "b", {"ownerUid": "bob", "visibility": "public", "startDate": "2024-06-01"})
    store.set("events", "c", {"ownerUid": "alice", "visibility": "public", "startDate": "2024-06-02"})

    public = store.query("events", (Filter("visibility", "==", "public"),), order_by="startDate")
    assert [d.id for d in public] == ["b", "c"]

    mine = store.query("events", (Filter("ownerUid", "==", "alice"), Filter("startDate", ">=", "2024-06-03")))
    assert [d.id for d in mine] == ["a"]


def test_missing_field_only_matches_inequality() -> None:
    assert not Filter("visibility", "==", "public").matches({})
    assert Filter("visibility", "!=", "public").matches({})


def test_unknown_operator_rejected() -> None:
    with pytest.raises(ValueError):
        Filter("title", "contains", "x")


def test_subscribe_delivers_immediately_then_on_change(store) -> None:
    snapshots = []
    unsubscribe = store.subscribe(
        "events", (Filter("visibility", "==", "public"),),
        lambda docs: snapshots.append([d.id for d in docs]),
    )
    store.set("events", "p", {"visibility": "public"})
    store.set("events", "q", {"visibility": "private"})
    unsubscribe()
    store.set("events", "r", {"visibility": "public"})

    assert snapshots == [[], ["p"], ["p"]]
    assert store.listener_count == 0


def test_failing_live_query_is_detached(store, capsys) -> None:
    store.set("events", "a", {"startDate": "2024-06-01"})
    store.set("events", "b", {"startDate": 3})
    errors = []

    store.subscribe("events", (), lambda docs: None, on_error=errors.append, order_by="startDate")

    assert len(errors) == 1
    assert isinstance(errors[0], TypeError)
    assert store.listener_count == 0
    assert "failed" in capsys.readouterr().err


def test_json_store_persists_across_instances(tmp_path, clock) -> None:
    first = JsonDocumentStore(tmp_path, clock=clock)
    doc_id = first.add("events", {"title": "Dentist", "createdAt": SERVER_TIMESTAMP})

    with open(tmp_path / "events.json", encoding="utf-8") as f:
        payload = json.load(f)
    assert payload["collection"] == "events"
    assert payload["documents"][doc_id]["createdAt"] == {"$datetime": clock.now.isoformat()}

    reloaded = JsonDocumentStore(tmp_path)
    data = reloaded.get("events", doc_id).document.data
    assert data["title"] == "Dentist"
    assert data["createdAt"] == datetime(2024, 6, 1, 12, 0, tzinfo=pytz.UTC)


def test_json_store_rejects_unserializable_values(tmp_path) -> None:
    store = JsonDocumentStore(tmp_path)
    with pytest.raises(DocumentStoreError):
        store.set("events", "e1", {"bad": object()})
    assert isinstance(store.get("events", "e1"), NotFound)


def test_json_store_rejects_corrupt_file(tmp_path) -> None:
    (tmp_path / "events.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(DocumentStoreError):
        JsonDocumentStore(tmp_path)


def test_factory(tmp_path) -> None:
    assert type(create_document_store("memory")) is MemoryDocumentStore
    assert isinstance(create_document_store("json", tmp_path), JsonDocumentStore)


def test_raising_snapshot_listener_does_not_fail_write(store, capsys) -> None:
    received = []

    def broken(docs):
        if docs:
            raise RuntimeError("listener bug")

    store.subscribe("events", (), broken)
    store.subscribe("events", (), lambda docs: received.append(len(docs)))

    store.set("events", "e1", {"title": "Dentist"})

    assert isinstance(store.get("events", "e1"), Found)
    assert received == [0, 1]
    assert store.listener_count == 2
    assert "listener bug" in capsys.readouterr().err
