"""User-facing trace log: append-only, unbounded, windowed by consumers."""

from __future__ import annotations

import logging
import uuid
from typing import Iterable

from shared.models import TraceLevel, TraceLog

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"info": logging.INFO, "warn": logging.WARNING, "error": logging.ERROR}


class TraceRecorder:
    """Collects TraceLog entries and mirrors them to the standard logger."""

    def __init__(self) -> None:
        self._entries: list[TraceLog] = []

    @property
    def entries(self) -> tuple[TraceLog, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, level: TraceLevel, message: str, node_id: str | None = None) -> TraceLog:
        entry = TraceLog(
            id=f"trace-{uuid.uuid4().hex[:12]}",
            level=level,
            message=message,
            node_id=node_id,
        )
        self._append(entry)
        return entry

    def info(self, message: str, node_id: str | None = None) -> TraceLog:
        return self.add("info", message, node_id)

    def warn(self, message: str, node_id: str | None = None) -> TraceLog:
        return self.add("warn", message, node_id)

    def error(self, message: str, node_id: str | None = None) -> TraceLog:
        return self.add("error", message, node_id)

    def extend(self, entries: Iterable[TraceLog]) -> None:
        for entry in entries:
            self._append(entry)

    def recent(self, limit: int = 50) -> list[TraceLog]:
        """Return the last `limit` entries (display window)."""
        if limit <= 0:
            return []
        return list(self._entries[-limit:])

    def _append(self, entry: TraceLog) -> None:
        self._entries.append(entry)
        if entry.node_id:
            logger.log(_LOG_LEVELS[entry.level], "[%s] %s", entry.node_id, entry.message)
        else:
            logger.log(_LOG_LEVELS[entry.level], "%s", entry.message)
