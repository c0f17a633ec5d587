"""Run-level contracts shared by the execution engine and its listeners.

These models describe what happened during a run (events) and how the
run ended (outcome). They carry graph snapshots, never live references.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from shared.models import ExecutionContext, NodeStatus, WorkflowGraph


RunStatus = Literal["completed", "cancelled", "rejected"]
EventType = Literal[
    "run_started",
    "node_started",
    "node_succeeded",
    "node_failed",
    "run_cancelled",
    "run_completed",
    "run_rejected",
    "graph_reset",
]


class WorkflowEvent(BaseModel):
    """Canonical event envelope emitted on every state transition."""

    model_config = {"frozen": True}

    event_id: str
    run_id: str
    event_type: EventType
    node_id: str | None = Field(default=None)
    status: NodeStatus | None = Field(default=None)
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RunOutcome(BaseModel):
    """Final snapshot of a run."""

    model_config = {"frozen": True}

    run_id: str
    status: RunStatus
    graph: WorkflowGraph
    context: ExecutionContext | None = Field(default=None)
    order: list[str] = Field(default_factory=list, description="Scheduled node ids")
    done_count: int = Field(default=0)
    blocked_count: int = Field(default=0)
    pending_count: int = Field(default=0)

    @property
    def succeeded(self) -> bool:
        return self.status == "completed" and self.blocked_count == 0
