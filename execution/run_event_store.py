"""Persistent event store for workflow runs."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone

from shared.workflow_contracts import WorkflowEvent


class RunEventStore:
    """SQLite-backed store for run events. Usable directly as an engine listener."""

    def __init__(self, db_path: str = "workflow_runs.db"):
        self.db_path = db_path
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
            CREATE TABLE IF NOT EXISTS run_events (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id TEXT NOT NULL UNIQUE,
                run_id TEXT NOT NULL,
                event_type TEXT NOT NULL,
                node_id TEXT,
                event_json TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_run_events_run_id
            ON run_events(run_id)
            """
        )
        self._conn.commit()

    def __call__(self, event: WorkflowEvent) -> None:
        self.save_event(event)

    def save_event(self, event: WorkflowEvent) -> None:
        payload = event.model_dump(mode="json")
        self._conn.execute(
            """
            INSERT OR IGNORE INTO run_events (event_id, run_id, event_type, node_id, event_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.run_id,
                event.event_type,
                event.node_id,
                json.dumps(payload, ensure_ascii=False),
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        self._conn.commit()

    def list_events(self, run_id: str) -> list[WorkflowEvent]:
        rows = self._conn.execute(
            """
            SELECT event_json
            FROM run_events
            WHERE run_id = ?
            ORDER BY seq ASC
            """,
            (run_id,),
        ).fetchall()
        return [WorkflowEvent(**json.loads(row["event_json"])) for row in rows]

    def list_runs(self, limit: int = 20) -> list[str]:
        rows = self._conn.execute(
            """
            SELECT run_id, MAX(seq) AS last_seq
            FROM run_events
            WHERE run_id LIKE 'run-%'
            GROUP BY run_id
            ORDER BY last_seq DESC
            LIMIT ?
            """,
            (max(1, limit),),
        ).fetchall()
        return [str(row["run_id"]) for row in rows]

    def close(self) -> None:
        self._conn.close()
