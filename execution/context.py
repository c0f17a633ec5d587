"""Context Propagator — the append-only state threaded through a run.

Contexts are frozen; every update returns a new value so earlier snapshots
stay valid for readers that still hold them.
"""

from __future__ import annotations

from shared.models import ExecutedNode, ExecutionContext, WorkflowNode


def create_initial_context(original_idea: str) -> ExecutionContext:
    return ExecutionContext(
        original_idea=original_idea,
        executed_nodes=(),
        current_input=original_idea,
    )


def update_context(context: ExecutionContext, node: WorkflowNode, output: str) -> ExecutionContext:
    return context.model_copy(
        update={
            "executed_nodes": (
                *context.executed_nodes,
                ExecutedNode(node_id=node.id, title=node.title, output=output),
            ),
            "current_input": output,
        }
    )
