"""Key/value store abstractions and implementations."""

from memory.store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore

__all__ = ["InMemoryKeyValueStore", "KeyValueStore", "SQLiteKeyValueStore"]
