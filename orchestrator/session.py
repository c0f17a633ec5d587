"""
Workflow Session — owns the graph for the life of a session.

Responsibility:
- Generate graphs from ideas (with a TTL cache keyed by the idea)
- Run / stop / reset through the execution engine
- Apply structural edits, serialized behind any active run

Prohibitions:
- No scheduling or execution logic (engine)
- No graph algorithms (planner, editor)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from editor.graph_editor import GraphEditor
from execution.engine import WorkflowExecutionEngine
from execution.scheduler import execution_order_ids
from memory.store import KeyValueStore
from planner.graph_exchange import GraphFormatError, export_graph, import_graph
from planner.service import PlannerService
from shared.models import WorkflowGraph
from shared.workflow_contracts import RunOutcome

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "workflow-cache"


class WorkflowSession:
    """Single-owner holder of the mutable graph of one session."""

    def __init__(
        self,
        planner: PlannerService,
        engine: WorkflowExecutionEngine,
        editor: GraphEditor | None = None,
        cache: KeyValueStore | None = None,
        cache_ttl_seconds: float | None = None,
    ):
        self.planner = planner
        self.engine = engine
        self.editor = editor or GraphEditor(validator=planner.validator)
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.trace = engine.trace
        self.idea = ""
        self.graph = WorkflowGraph()
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self.engine.is_running

    async def generate(self, idea: str, use_cache: bool = True) -> WorkflowGraph:
        """Structure an idea into the session graph. Waits for any active run."""
        async with self._lock:
            self.idea = idea
            cached = self._load_cached(idea) if use_cache else None
            if cached is not None:
                self.graph = cached
                self.trace.info(
                    f"Loaded workflow from cache ({len(cached.nodes)} nodes, {len(cached.edges)} edges)"
                )
                return self.graph

            result = self.planner.parse_idea(idea)
            self.trace.extend(result.trace)
            self.graph = result.graph
            self._store_cached()
            return self.graph

    async def adopt(self, payload: Any, idea: str | None = None) -> WorkflowGraph:
        """Replace the session graph with one from an external producer."""
        async with self._lock:
            if idea is not None:
                self.idea = idea
            result = self.planner.adopt_graph(payload, idea=self.idea)
            self.trace.extend(result.trace)
            self.graph = result.graph
            self._store_cached()
            return self.graph

    def execution_order(self) -> list[str]:
        return execution_order_ids(self.graph)

    async def run(self) -> RunOutcome:
        """Run the session graph. A second call waits for the active run."""
        async with self._lock:
            outcome = await self.engine.run(self.graph, self.idea or self.planner.decomposer.resolve_idea(None))
            if outcome.status != "rejected":
                self.graph = outcome.graph
            return outcome

    def stop(self) -> bool:
        return self.engine.cancel()

    async def reset(self) -> WorkflowGraph:
        async with self._lock:
            self.graph = await self.engine.reset(self.graph)
            if self.cache is not None and self.idea:
                self.cache.delete(self.idea, namespace=CACHE_NAMESPACE)
            return self.graph

    async def delete_node(self, node_id: str) -> WorkflowGraph:
        async with self._lock:
            updated = self.editor.delete_node(self.graph, node_id)
            if updated is not self.graph:
                self.trace.info(f"Deleted node {node_id} and reconnected flow.")
            self.graph = updated
            self._store_cached()
            return self.graph

    async def connect(self, source: str, target: str) -> WorkflowGraph:
        async with self._lock:
            updated = self.editor.connect(self.graph, source, target)
            if updated is not self.graph:
                self.trace.info(f"Connected {source} → {target}.")
            self.graph = updated
            self._store_cached()
            return self.graph

    def _load_cached(self, idea: str) -> WorkflowGraph | None:
        if self.cache is None or not idea.strip():
            return None
        payload = self.cache.get(idea, namespace=CACHE_NAMESPACE)
        if payload is None:
            return None
        try:
            return import_graph(payload)
        except GraphFormatError as exc:
            logger.warning("Ignoring unreadable cached workflow: %s", exc)
            return None

    def _store_cached(self) -> None:
        if self.cache is None or not self.idea.strip():
            return
        try:
            self.cache.set(
                self.idea,
                export_graph(self.graph),
                namespace=CACHE_NAMESPACE,
                ttl_seconds=self.cache_ttl_seconds,
            )
        except Exception as exc:
            logger.warning("Failed to cache workflow: %s", exc)
