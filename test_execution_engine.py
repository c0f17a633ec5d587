import asyncio

import pytest

from execution.engine import WorkflowExecutionEngine, reset_graph
from execution.step_executor import DryRunStepExecutor
from shared.models import StepResult, WorkflowEdge, WorkflowGraph, WorkflowNode


def _chain(*node_ids: str) -> WorkflowGraph:
    nodes = [WorkflowNode(id=node_id, title=f"Step {node_id}") for node_id in node_ids]
    edges = [
        WorkflowEdge(id=f"e-{source.id}-{target.id}", source=source.id, target=target.id)
        for source, target in zip(nodes, nodes[1:])
    ]
    return WorkflowGraph(nodes=nodes, edges=edges, summary="test")


class _ScriptedExecutor:
    """Returns canned results per node id and records what it was given."""

    def __init__(self, results: dict[str, StepResult] | None = None):
        self.results = results or {}
        self.calls: list[tuple[str, str, int]] = []

    async def execute(self, node, context):
        self.calls.append((node.id, context.current_input, len(context.executed_nodes)))
        return self.results.get(node.id, StepResult(success=True, output=f"out-{node.id}"))


def test_successful_run_marks_every_node_done_and_threads_context():
    async def _run():
        executor = _ScriptedExecutor()
        engine = WorkflowExecutionEngine(step_executor=executor)

        outcome = await engine.run(_chain("a", "b", "c"), "ship the idea")

        assert outcome.status == "completed"
        assert outcome.succeeded
        assert outcome.order == ["a", "b", "c"]
        assert [node.status for node in outcome.graph.nodes] == ["done", "done", "done"]
        assert outcome.graph.get_node("b").output == "out-b"
        assert executor.calls == [("a", "ship the idea", 0), ("b", "out-a", 1), ("c", "out-b", 2)]
        assert [entry.node_id for entry in outcome.context.executed_nodes] == ["a", "b", "c"]
        assert outcome.context.current_input == "out-c"
        assert outcome.context.original_idea == "ship the idea"

    asyncio.run(_run())


def test_partial_failure_continues_and_skips_context_update():
    async def _run():
        executor = _ScriptedExecutor({"b": StepResult(success=False, error="quota exceeded")})
        engine = WorkflowExecutionEngine(step_executor=executor)

        outcome = await engine.run(_chain("a", "b", "c"), "idea")

        assert outcome.status == "completed"
        assert not outcome.succeeded
        assert [node.status for node in outcome.graph.nodes] == ["done", "blocked", "done"]
        blocked = outcome.graph.get_node("b")
        assert blocked.error == "quota exceeded"
        assert blocked.output is None
        # c still ran, fed by a's output since b never updated the context.
        assert executor.calls[-1] == ("c", "out-a", 1)
        assert [entry.node_id for entry in outcome.context.executed_nodes] == ["a", "c"]
        assert (outcome.done_count, outcome.blocked_count, outcome.pending_count) == (2, 1, 0)

    asyncio.run(_run())


def test_raising_executor_and_empty_output_block_the_node():
    class _Flaky:
        async def execute(self, node, context):
            if node.id == "a":
                raise RuntimeError("network down")
            if node.id == "b":
                return StepResult(success=True, output="")
            return StepResult(success=False)

    async def _run():
        engine = WorkflowExecutionEngine(step_executor=_Flaky())

        outcome = await engine.run(_chain("a", "b", "c"), "idea")

        assert outcome.status == "completed"
        assert outcome.graph.get_node("a").error == "network down"
        assert outcome.graph.get_node("b").status == "blocked"
        assert outcome.graph.get_node("c").error == "Execution failed"
        assert outcome.context.executed_nodes == ()

    asyncio.run(_run())


def test_cancel_stops_at_next_node_boundary():
    async def _run():
        engine = None

        class _CancelDuringB(_ScriptedExecutor):
            async def execute(self, node, context):
                if node.id == "b":
                    assert engine.cancel() is True
                return await super().execute(node, context)

        executor = _CancelDuringB()
        engine = WorkflowExecutionEngine(step_executor=executor)

        outcome = await engine.run(_chain("a", "b", "c"), "idea")

        assert outcome.status == "cancelled"
        # The in-flight node finishes; nothing after it starts.
        assert [node.status for node in outcome.graph.nodes] == ["done", "done", "pending"]
        assert [call[0] for call in executor.calls] == ["a", "b"]
        assert not engine.is_running
        assert any(entry.message == "Execution aborted by user" for entry in engine.trace.entries)

    asyncio.run(_run())


def test_cancel_when_idle_is_a_no_op():
    engine = WorkflowExecutionEngine(step_executor=DryRunStepExecutor())

    assert engine.cancel() is False


def test_second_run_is_rejected_while_first_is_active():
    async def _run():
        release = asyncio.Event()

        class _Blocking:
            async def execute(self, node, context):
                await release.wait()
                return StepResult(success=True, output="ok")

        engine = WorkflowExecutionEngine(step_executor=_Blocking())
        graph = _chain("a", "b")
        first = asyncio.create_task(engine.run(graph, "idea"))
        while not engine.is_running:
            await asyncio.sleep(0)

        second = await engine.run(graph, "idea")
        release.set()
        first_outcome = await first

        assert second.status == "rejected"
        assert second.graph == graph
        assert first_outcome.status == "completed"
        assert first_outcome.done_count == 2

    asyncio.run(_run())


def test_events_follow_state_transitions():
    async def _run():
        executor = _ScriptedExecutor({"b": StepResult(success=False, error="boom")})
        engine = WorkflowExecutionEngine(step_executor=executor)
        seen = []
        received_async = []

        async def _async_listener(event):
            received_async.append(event.event_type)

        engine.subscribe(seen.append)
        unsubscribe = engine.subscribe(_async_listener)

        outcome = await engine.run(_chain("a", "b"), "idea")

        assert [(event.event_type, event.node_id) for event in seen] == [
            ("run_started", None),
            ("node_started", "a"),
            ("node_succeeded", "a"),
            ("node_started", "b"),
            ("node_failed", "b"),
            ("run_completed", None),
        ]
        assert {event.run_id for event in seen} == {outcome.run_id}
        assert seen[0].payload["order"] == ["a", "b"]
        assert seen[-1].payload == {"done_count": 1, "blocked_count": 1, "pending_count": 0}
        assert received_async == [event.event_type for event in seen]

        unsubscribe()
        await engine.run(_chain("a"), "idea")
        assert len(received_async) == 6

    asyncio.run(_run())


def test_failing_listener_does_not_break_the_run():
    async def _run():
        engine = WorkflowExecutionEngine(step_executor=DryRunStepExecutor())

        def _broken(event):
            raise ValueError("listener bug")

        engine.subscribe(_broken)
        outcome = await engine.run(_chain("a", "b"), "idea")

        assert outcome.status == "completed"
        assert outcome.done_count == 2

    asyncio.run(_run())


def test_run_starts_from_pending_even_if_graph_has_stale_results():
    async def _run():
        graph = _chain("a", "b").update_node("a", status="running").update_node("a", status="blocked", error="old failure")
        engine = WorkflowExecutionEngine(step_executor=_ScriptedExecutor())

        outcome = await engine.run(graph, "idea")

        node = outcome.graph.get_node("a")
        assert node.status == "done"
        assert node.error is None

    asyncio.run(_run())


def test_reset_returns_all_nodes_to_pending():
    async def _run():
        engine = WorkflowExecutionEngine(step_executor=DryRunStepExecutor())
        events = []
        engine.subscribe(events.append)
        outcome = await engine.run(_chain("a", "b"), "idea")

        graph = await engine.reset(outcome.graph)

        assert all(node.status == "pending" for node in graph.nodes)
        assert all(node.output is None and node.error is None for node in graph.nodes)
        assert engine.context is None
        assert events[-1].event_type == "graph_reset"

    asyncio.run(_run())


def test_reset_graph_does_not_touch_structure():
    graph = _chain("a", "b").update_node("b", status="running").update_node("b", status="done", output="x")

    reset = reset_graph(graph)

    assert reset.edges == graph.edges
    assert reset.get_node("b").status == "pending"
    assert graph.get_node("b").output == "x"


def test_cyclic_graph_runs_every_node_once():
    async def _run():
        graph = _chain("A", "B", "C")
        graph = graph.model_copy(
            update={"edges": [*graph.edges, WorkflowEdge(id="loop", source="C", target="A")]}
        )
        executor = _ScriptedExecutor()
        engine = WorkflowExecutionEngine(step_executor=executor)

        outcome = await engine.run(graph, "idea")

        assert sorted(call[0] for call in executor.calls) == ["A", "B", "C"]
        assert outcome.done_count == 3

    asyncio.run(_run())


def test_node_status_only_moves_forward():
    graph = _chain("a").update_node("a", status="running").update_node("a", status="done", output="x")

    with pytest.raises(ValueError):
        graph.update_node("a", status="running")
    with pytest.raises(ValueError):
        _chain("a").update_node("a", status="blocked", error="skipped running")
    assert reset_graph(graph).get_node("a").status == "pending"
