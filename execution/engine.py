"""Execution Engine.

Runs a workflow graph one node at a time in Scheduler order:
- per-node state machine pending → running → done | blocked
- partial-failure semantics (a blocked node never aborts the run)
- cooperative cancellation checked at node boundaries
- discrete events emitted to subscribers on every transition
"""

from __future__ import annotations

import inspect
import logging
import uuid
from typing import Any, Callable

from execution.context import create_initial_context, update_context
from execution.scheduler import execution_order
from execution.step_executor import StepExecutor
from observability.logger import Observability
from observability.trace import TraceRecorder
from shared.models import ExecutionContext, StepResult, WorkflowGraph, WorkflowNode
from shared.workflow_contracts import RunOutcome, RunStatus, WorkflowEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[WorkflowEvent], Any]

OUTPUT_PREVIEW_CHARS = 100


def reset_graph(graph: WorkflowGraph) -> WorkflowGraph:
    """Return every node to pending with output/error cleared."""
    return graph.model_copy(
        update={
            "nodes": [
                node.model_copy(update={"status": "pending", "output": None, "error": None})
                for node in graph.nodes
            ]
        }
    )


class WorkflowExecutionEngine:
    """Sequential, single-run-at-a-time executor for workflow graphs."""

    def __init__(
        self,
        step_executor: StepExecutor,
        observability: Observability | None = None,
        trace: TraceRecorder | None = None,
    ):
        self.step_executor = step_executor
        self.observability = observability or Observability()
        self.trace = trace or TraceRecorder()
        self.graph: WorkflowGraph | None = None
        self.context: ExecutionContext | None = None
        self._listeners: list[EventListener] = []
        self._running = False
        self._cancel_requested = False

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register an event listener (sync or async). Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def cancel(self) -> bool:
        """Request a stop at the next node boundary. Returns False when idle."""
        if not self._running:
            return False
        self._cancel_requested = True
        self.trace.warn("Execution stop requested by user")
        return True

    async def reset(self, graph: WorkflowGraph) -> WorkflowGraph:
        """Return all nodes to pending and discard the last run's context."""
        if self._running:
            logger.warning("Reset ignored: a run is in progress")
            return graph
        self.graph = reset_graph(graph)
        self.context = None
        await self._emit("graph_reset", run_id=f"reset-{uuid.uuid4().hex[:12]}")
        self.trace.info("All node statuses reset")
        return self.graph

    async def run(self, graph: WorkflowGraph, original_idea: str) -> RunOutcome:
        """Execute the graph; never raises for step failures or cancellation."""
        run_id = f"run-{uuid.uuid4().hex[:12]}"
        if self._running:
            logger.warning("Run %s rejected: another run is in progress", run_id)
            await self._emit("run_rejected", run_id=run_id)
            return RunOutcome(run_id=run_id, status="rejected", graph=graph)

        self._running = True
        self._cancel_requested = False
        obs = self.observability.span(run_id)
        try:
            return await self._run(run_id, graph, original_idea, obs)
        finally:
            self._running = False
            self._cancel_requested = False

    async def _run(
        self,
        run_id: str,
        graph: WorkflowGraph,
        original_idea: str,
        obs: Observability,
    ) -> RunOutcome:
        current = reset_graph(graph)
        context = create_initial_context(original_idea)
        self.graph = current
        self.context = context

        ordered = execution_order(current)
        order_ids = [node.id for node in ordered]
        logger.info("Workflow run %s started: %d nodes", run_id, len(ordered))
        self.trace.info("Starting workflow execution...")
        self.trace.info(f"Execution order: {' → '.join(node.title for node in ordered)}")
        await self._emit("run_started", run_id=run_id, payload={"order": order_ids})

        status: RunStatus = "completed"
        with obs.measure("workflow_run", {"run_id": run_id, "nodes": len(ordered)}) as metric:
            for node in ordered:
                if self._cancel_requested:
                    status = "cancelled"
                    break
                current, context = await self._execute_node(run_id, current, context, node.id, obs)
                self.graph = current
                self.context = context
            metric.update(self._counts(current))
            metric["status"] = status

        if status == "cancelled":
            self.trace.warn("Execution aborted by user")
            await self._emit("run_cancelled", run_id=run_id, payload=self._counts(current))
        else:
            self.trace.info("Workflow execution complete")
            await self._emit("run_completed", run_id=run_id, payload=self._counts(current))

        return RunOutcome(
            run_id=run_id,
            status=status,
            graph=current,
            context=context,
            order=order_ids,
            **self._counts(current),
        )

    async def _execute_node(
        self,
        run_id: str,
        graph: WorkflowGraph,
        context: ExecutionContext,
        node_id: str,
        obs: Observability,
    ) -> tuple[WorkflowGraph, ExecutionContext]:
        graph = graph.update_node(node_id, status="running")
        node = graph.get_node(node_id)
        if node is None:
            return graph, context
        self.graph = graph
        obs.node_transition(node_id, "running")
        self.trace.info(f"▶ Executing: {node.title}", node_id=node_id)
        await self._emit("node_started", run_id=run_id, node_id=node_id, status="running")

        result = await self._dispatch(node, context)

        if result.success and result.output:
            context = update_context(context, node, result.output)
            graph = graph.update_node(node_id, status="done", output=result.output)
            obs.node_transition(node_id, "done", output_chars=len(result.output))
            self.trace.info(f"✓ Completed: {node.title}", node_id=node_id)
            self.trace.info(f"   Output: {_preview(result.output)}", node_id=node_id)
            await self._emit(
                "node_succeeded",
                run_id=run_id,
                node_id=node_id,
                status="done",
                payload={"output": result.output},
            )
        else:
            message = (result.error or "").strip() or "Execution failed"
            graph = graph.update_node(node_id, status="blocked", error=message)
            obs.node_transition(node_id, "blocked", error=message)
            self.trace.error(f"✗ Failed: {node.title} - {message}", node_id=node_id)
            await self._emit(
                "node_failed",
                run_id=run_id,
                node_id=node_id,
                status="blocked",
                payload={"error": message},
            )
        return graph, context

    async def _dispatch(self, node: WorkflowNode, context: ExecutionContext) -> StepResult:
        try:
            result = await self.step_executor.execute(node, context)
        except Exception as exc:
            logger.warning("Step executor raised for node %s: %s", node.id, exc)
            return StepResult(success=False, error=str(exc) or exc.__class__.__name__)
        if not isinstance(result, StepResult):
            return StepResult(success=False, error="Step executor returned an invalid result")
        return result

    async def _emit(
        self,
        event_type: str,
        *,
        run_id: str,
        node_id: str | None = None,
        status: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        event = WorkflowEvent(
            event_id=f"evt-{uuid.uuid4().hex[:14]}",
            run_id=run_id,
            event_type=event_type,  # type: ignore[arg-type]
            node_id=node_id,
            status=status,  # type: ignore[arg-type]
            payload=payload or {},
        )
        for listener in list(self._listeners):
            try:
                maybe_awaitable = listener(event)
                if inspect.isawaitable(maybe_awaitable):
                    await maybe_awaitable
            except Exception as exc:
                logger.warning("Event listener failed on '%s': %s", event_type, exc)

    def _counts(self, graph: WorkflowGraph) -> dict[str, int]:
        statuses = [node.status for node in graph.nodes]
        return {
            "done_count": statuses.count("done"),
            "blocked_count": statuses.count("blocked"),
            "pending_count": statuses.count("pending"),
        }


def _preview(text: str) -> str:
    if len(text) > OUTPUT_PREVIEW_CHARS:
        return f"{text[:OUTPUT_PREVIEW_CHARS]}..."
    return text
