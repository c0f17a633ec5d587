from __future__ import annotations

from pathlib import Path

import pytest

from memory.store import InMemoryKeyValueStore, SQLiteKeyValueStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_sqlite_store_set_get_delete(tmp_path: Path):
    store = SQLiteKeyValueStore(db_path=str(tmp_path / "cache_test.db"))

    try:
        store.set("idea-1", {"nodes": [], "edges": []}, namespace="workflow-cache")
        store.set("flag", True, namespace="session:s1")

        assert store.get("idea-1", namespace="workflow-cache") == {"nodes": [], "edges": []}
        assert store.get("flag", namespace="session:s1") is True
        assert store.get("flag", namespace="global") is None

        assert store.delete("flag", namespace="session:s1") is True
        assert store.delete("flag", namespace="session:s1") is False
        assert store.get("flag", namespace="session:s1") is None
    finally:
        store.close()


def test_sqlite_store_expiry_behaves_like_missing(tmp_path: Path):
    clock = FakeClock()
    store = SQLiteKeyValueStore(db_path=str(tmp_path / "cache_ttl.db"), clock=clock)

    try:
        store.set("short", "a", ttl_seconds=10)
        store.set("long", "b", ttl_seconds=100)
        store.set("forever", "c")

        clock.now += 9.9
        assert store.get("short") == "a"

        clock.now += 0.1
        assert store.get("short") is None
        assert store.delete("short") is False

        clock.now += 200
        assert store.purge_expired() == 1
        assert store.get("forever") == "c"
    finally:
        store.close()


def test_sqlite_store_persists_across_connections(tmp_path: Path):
    db_path = str(tmp_path / "cache_persist.db")
    first = SQLiteKeyValueStore(db_path=db_path)
    first.set("idea", ["x", "y"])
    first.close()

    second = SQLiteKeyValueStore(db_path=db_path)
    try:
        assert second.get("idea") == ["x", "y"]
    finally:
        second.close()


def test_in_memory_store_expiry_and_overwrite():
    clock = FakeClock()
    store = InMemoryKeyValueStore(clock=clock)

    store.set("k", 1, ttl_seconds=5)
    store.set("k", 2, ttl_seconds=50)
    clock.now += 10

    assert store.get("k") == 2
    clock.now += 50
    assert store.get("k") is None
    assert store.purge_expired() == 0


def test_store_rejects_empty_key_and_non_positive_ttl():
    store = InMemoryKeyValueStore()

    with pytest.raises(ValueError):
        store.set("  ", "value")
    with pytest.raises(ValueError):
        store.set("k", "value", ttl_seconds=0)
