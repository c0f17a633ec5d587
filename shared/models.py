"""
Shared Pydantic models for all layers.
All models are immutable (frozen) after creation; updates go through model_copy.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


WorkflowCategory = Literal["collect", "analyze", "execute", "notify", "decision"]
NodeStatus = Literal["pending", "running", "done", "blocked"]
EdgeLabel = Literal["next", "branch", "follow"]
TraceLevel = Literal["info", "warn", "error"]

CATEGORIES: tuple[str, ...] = ("collect", "analyze", "execute", "notify", "decision")
EDGE_LABELS: tuple[str, ...] = ("next", "branch", "follow")

# Forward moves of the per-node state machine; reset_graph is the only way back.
NODE_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"running"}),
    "running": frozenset({"done", "blocked"}),
    "done": frozenset(),
    "blocked": frozenset(),
}

# Category assigned to nodes from external producers that use an unknown value.
DEFAULT_EXTERNAL_CATEGORY = "execute"


# ─── Graph Layer ──────────────────────────────────────────────

class WorkflowNode(BaseModel):
    """Atomic step in a workflow graph."""
    model_config = {"frozen": True, "populate_by_name": True}

    id: str
    title: str = Field(default="Untitled step")
    detail: str = Field(default="", description="Source text of the step")
    category: WorkflowCategory = Field(default="collect")
    status: NodeStatus = Field(default="pending")
    tags: list[str] = Field(default_factory=list, description="Lower-cased tags with set semantics")
    output: str | None = Field(default=None, description="Present only once the node is done")
    error: str | None = Field(default=None, description="Present only once the node is blocked")
    search_query: str | None = Field(default=None, alias="searchQuery")

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: Any) -> str:
        normalized = str(value or "").strip().lower()
        return normalized if normalized in CATEGORIES else DEFAULT_EXTERNAL_CATEGORY

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple, set, frozenset)):
            return []
        tags: list[str] = []
        for item in value:
            tag = str(item).strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @model_validator(mode="after")
    def check_output_error_exclusive(self) -> "WorkflowNode":
        if self.output is not None and self.error is not None:
            raise ValueError(f"Node '{self.id}' cannot carry both output and error")
        return self

    def tag_set(self) -> frozenset[str]:
        return frozenset(self.tags)


class WorkflowEdge(BaseModel):
    """Directed dependency link between two nodes."""
    model_config = {"frozen": True}

    id: str
    source: str
    target: str
    label: EdgeLabel | None = Field(default=None)

    @field_validator("label", mode="before")
    @classmethod
    def coerce_label(cls, value: Any) -> str | None:
        if value is None:
            return None
        normalized = str(value).strip().lower()
        if not normalized:
            return None
        return normalized if normalized in EDGE_LABELS else "next"


class WorkflowGraph(BaseModel):
    """Nodes in layout order, edges, a summary and advisory warnings."""
    model_config = {"frozen": True}

    nodes: list[WorkflowNode] = Field(default_factory=list)
    edges: list[WorkflowEdge] = Field(default_factory=list)
    summary: str = Field(default="")
    warnings: list[str] = Field(default_factory=list)

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> WorkflowNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_edge(self, source: str, target: str) -> bool:
        return any(edge.source == source and edge.target == target for edge in self.edges)

    def replace_node(self, node: WorkflowNode) -> "WorkflowGraph":
        """Return a new graph with the node of the same id swapped in."""
        return self.model_copy(
            update={"nodes": [node if item.id == node.id else item for item in self.nodes]}
        )

    def update_node(self, node_id: str, **changes: Any) -> "WorkflowGraph":
        """Return a new graph with one node changed; status may only move forward."""
        node = self.get_node(node_id)
        if node is None:
            return self
        status = changes.get("status", node.status)
        if status != node.status and status not in NODE_TRANSITIONS[node.status]:
            raise ValueError(f"Node '{node_id}' cannot move from {node.status} to {status}")
        updated = WorkflowNode.model_validate({**node.model_dump(), **changes})
        return self.replace_node(updated)


# ─── Execution Layer ──────────────────────────────────────────

class ExecutedNode(BaseModel):
    """One entry of the context log."""
    model_config = {"frozen": True}

    node_id: str
    title: str
    output: str


class ExecutionContext(BaseModel):
    """Accumulated state threaded through sequential node execution."""
    model_config = {"frozen": True}

    original_idea: str
    executed_nodes: tuple[ExecutedNode, ...] = Field(default_factory=tuple)
    current_input: str = Field(default="")


class StepResult(BaseModel):
    """Outcome reported by a Step Executor for one node."""
    model_config = {"frozen": True}

    success: bool
    output: str | None = Field(default=None)
    error: str | None = Field(default=None)


# ─── Observability Layer ──────────────────────────────────────

class TraceLog(BaseModel):
    """User-facing trace entry."""
    model_config = {"frozen": True}

    id: str
    level: TraceLevel = Field(default="info")
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    node_id: str | None = Field(default=None)


# ─── Planner Layer ────────────────────────────────────────────

class ParseResult(BaseModel):
    """Graph produced from an idea plus the trace written while producing it."""
    model_config = {"frozen": True}

    graph: WorkflowGraph
    trace: list[TraceLog] = Field(default_factory=list)


class IdeaAssessment(BaseModel):
    """Advisory verdict on whether an idea looks meaningful."""
    model_config = {"frozen": True}

    is_valid: bool
    reason: str = Field(default="")


# ─── Model Layer (Policy) ──────────────────────────────────────

class ModelPolicy(BaseModel):
    """Configuration for a single completion call."""
    model_config = {"frozen": True}
    model_name: str
    temperature: float = 0.6
    timeout_seconds: float = 60.0
    max_tokens: int = 800
