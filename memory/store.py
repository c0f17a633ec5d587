"""
Key/value store abstractions and deterministic implementations.

Design goals:
- Explicit repository API (get/set/delete) injected where needed
- Structured JSON values with an explicit expiry contract
- An expired entry behaves exactly like a missing one
"""

from __future__ import annotations

import json
import sqlite3
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

Clock = Callable[[], float]


class KeyValueStore(ABC):
    """Session-scoped cache abstraction used by planner/session components."""

    @abstractmethod
    def get(self, key: str, namespace: str = "global") -> Any | None:
        """Retrieve a live value by key, or None when missing or expired."""

    @abstractmethod
    def set(
        self,
        key: str,
        value: Any,
        namespace: str = "global",
        ttl_seconds: float | None = None,
    ) -> None:
        """Persist a value; ttl_seconds=None keeps it until deleted."""

    @abstractmethod
    def delete(self, key: str, namespace: str = "global") -> bool:
        """Remove a key. Returns True when a live entry was removed."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""

    def close(self) -> None:
        """Release store resources."""


def _normalize(key: str, namespace: str) -> tuple[str, str]:
    key_norm = (key or "").strip()
    if not key_norm:
        raise ValueError("Store key cannot be empty.")
    return key_norm, (namespace or "global").strip()


def _expires_at(now: float, ttl_seconds: float | None) -> float | None:
    if ttl_seconds is None:
        return None
    if ttl_seconds <= 0:
        raise ValueError("ttl_seconds must be positive.")
    return now + ttl_seconds


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, mostly for tests and single-shot CLI runs."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[str, float | None]] = {}

    def get(self, key: str, namespace: str = "global") -> Any | None:
        entry_key = _normalize(key, namespace)
        entry = self._entries.get(entry_key)
        if entry is None:
            return None
        value_json, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[entry_key]
            return None
        return json.loads(value_json)

    def set(
        self,
        key: str,
        value: Any,
        namespace: str = "global",
        ttl_seconds: float | None = None,
    ) -> None:
        entry_key = _normalize(key, namespace)
        value_json = json.dumps(value, ensure_ascii=False, sort_keys=True)
        self._entries[entry_key] = (value_json, _expires_at(self._clock(), ttl_seconds))

    def delete(self, key: str, namespace: str = "global") -> bool:
        present = self.get(key, namespace) is not None
        self._entries.pop(_normalize(key, namespace), None)
        return present

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [
            entry_key
            for entry_key, (_, expires_at) in self._entries.items()
            if expires_at is not None and expires_at <= now
        ]
        for entry_key in expired:
            del self._entries[entry_key]
        return len(expired)


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-backed deterministic key/value store with expiry."""

    def __init__(self, db_path: str = "workflow_cache.db", clock: Clock = time.time):
        self.db_path = db_path
        self._clock = clock
        self._conn = sqlite3.connect(
            db_path,
            check_same_thread=False,
            isolation_level="DEFERRED",
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._init_db()

    def _init_db(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_entries (
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                value_json TEXT NOT NULL,
                expires_at REAL,
                updated_at REAL NOT NULL,
                PRIMARY KEY(namespace, key)
            )
            """
        )
        self._conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_kv_expires_at
            ON kv_entries(expires_at)
            """
        )
        self._conn.commit()

    def get(self, key: str, namespace: str = "global") -> Any | None:
        key_norm, namespace_norm = _normalize(key, namespace)
        row = self._conn.execute(
            """
            SELECT value_json, expires_at
            FROM kv_entries
            WHERE namespace = ? AND key = ?
            LIMIT 1
            """,
            (namespace_norm, key_norm),
        ).fetchone()
        if not row:
            return None
        if row["expires_at"] is not None and row["expires_at"] <= self._clock():
            self._conn.execute(
                "DELETE FROM kv_entries WHERE namespace = ? AND key = ?",
                (namespace_norm, key_norm),
            )
            self._conn.commit()
            return None
        try:
            return json.loads(row["value_json"])
        except Exception:
            return row["value_json"]

    def set(
        self,
        key: str,
        value: Any,
        namespace: str = "global",
        ttl_seconds: float | None = None,
    ) -> None:
        key_norm, namespace_norm = _normalize(key, namespace)
        now = self._clock()
        value_json = json.dumps(value, ensure_ascii=False, sort_keys=True)

        self._conn.execute(
            """
            INSERT INTO kv_entries(namespace, key, value_json, expires_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(namespace, key) DO UPDATE SET
                value_json = excluded.value_json,
                expires_at = excluded.expires_at,
                updated_at = excluded.updated_at
            """,
            (namespace_norm, key_norm, value_json, _expires_at(now, ttl_seconds), now),
        )
        self._conn.commit()

    def delete(self, key: str, namespace: str = "global") -> bool:
        present = self.get(key, namespace) is not None
        key_norm, namespace_norm = _normalize(key, namespace)
        self._conn.execute(
            "DELETE FROM kv_entries WHERE namespace = ? AND key = ?",
            (namespace_norm, key_norm),
        )
        self._conn.commit()
        return present

    def purge_expired(self) -> int:
        cursor = self._conn.execute(
            "DELETE FROM kv_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (self._clock(),),
        )
        self._conn.commit()
        return int(cursor.rowcount or 0)

    def close(self) -> None:
        self._conn.close()
