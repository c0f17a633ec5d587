"""
Observability Layer — Structured Logging & metrics.

Responsibility:
- Log workflow events as one JSON object per line
- Track metrics (run duration, per-node latency, blocked nodes)
- Scope every entry to a session and, inside a run, to that run

User-facing trace entries live in observability.trace; this module is the
machine-readable side.
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

logger = logging.getLogger("observability")


class Observability:
    """JSON event logger bound to a session and optionally to one run."""

    def __init__(self, session_id: str | None = None, run_id: str | None = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.run_id = run_id

    def log_event(self, event_type: str, payload: dict[str, Any], level: str = "INFO") -> None:
        envelope: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "event": event_type,
        }
        if self.run_id:
            envelope["run_id"] = self.run_id
        envelope.update(payload)
        logger.log(logging.getLevelName(level.upper()), json.dumps(envelope, default=str))

    def node_transition(self, node_id: str, status: str, **details: Any) -> None:
        """Log one step of the pending→running→done|blocked state machine."""
        level = "WARNING" if status == "blocked" else "INFO"
        self.log_event("node_transition", {"node_id": node_id, "status": status, **details}, level=level)

    @contextmanager
    def measure(self, operation: str, metadata: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        """Time a block; callers may add fields to the yielded dict before it closes."""
        started = time.perf_counter()
        fields = dict(metadata or {})
        outcome: dict[str, Any] = {"success": True}
        try:
            yield fields
        except Exception as exc:
            outcome = {"success": False, "error": str(exc)}
            raise
        finally:
            self.log_event(
                "metric",
                {
                    "operation": operation,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    **outcome,
                    **fields,
                },
                level="INFO" if outcome["success"] else "ERROR",
            )

    def span(self, run_id: str) -> "Observability":
        """Logger sharing this session, with every entry tagged by run_id."""
        return Observability(self.session_id, run_id=run_id)
