"""Step Executor port and the executors shipped with the engine.

The engine only knows the StepExecutor protocol. CompletionStepExecutor
produces node output through the model layer; DryRunStepExecutor marks every
step done without calling anything.
"""

from __future__ import annotations

import logging
from typing import Protocol

from models.selector import ModelSelector
from shared.models import ExecutionContext, StepResult, WorkflowNode

logger = logging.getLogger(__name__)

SUMMARY_NODE_ID = "node-summary"

CATEGORY_PROMPTS: dict[str, str] = {
    "collect": (
        "You are executing a data collection step. Write in clear, human-readable language. "
        "Briefly describe what data is being collected (2-3 sentences max), mention the key "
        "sources or methods in simple terms, and state what will be available after collection."
    ),
    "analyze": (
        "You are executing an analysis step. Write in clear, human-readable language. "
        "Summarize the findings in 2-3 short paragraphs, highlight the most relevant insights, "
        "and drop redundant details."
    ),
    "execute": (
        "You are executing an action step. Write in clear, human-readable language. "
        "Describe what action was taken (1-2 sentences), explain the outcome in simple terms, "
        "and state what was produced or changed."
    ),
    "notify": (
        "You are executing a summary/notification step. Synthesize the previous results into "
        "3-5 clear paragraphs with the most important insights and actionable next steps, "
        "using simple, non-technical language."
    ),
    "decision": (
        "You are executing a decision/branching step. State the decision that was made "
        "(1 sentence), briefly explain the reasoning, and indicate which path will be taken."
    ),
}


class StepExecutor(Protocol):
    """Produces a node's output given its description and the current context."""

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> StepResult:
        ...


def is_summary_node(node: WorkflowNode) -> bool:
    return node.id == SUMMARY_NODE_ID or "summary" in node.title.lower()


def build_step_messages(node: WorkflowNode, context: ExecutionContext) -> list[dict[str, str]]:
    """Chat messages for one node: category prompt + goal, history and input."""
    previous_steps = "\n".join(
        f"{idx}. {entry.title}: {entry.output}"
        for idx, entry in enumerate(context.executed_nodes, start=1)
    )
    if is_summary_node(node):
        user_prompt = (
            f"Original Goal: {context.original_idea}\n\n"
            f"Steps Completed:\n{previous_steps or 'No steps completed.'}\n\n"
            "Create a concise, actionable summary (3-5 paragraphs) of the results above, "
            "with practical next steps."
        )
    else:
        parts = [
            f"Original Goal: {context.original_idea}",
            "",
            f"Current Step: {node.title}",
        ]
        if node.detail:
            parts.append(f"Description: {node.detail}")
        parts.append(f"Category: {node.category}")
        if node.search_query:
            parts.append(f"Research Query: {node.search_query}")
        if previous_steps:
            parts.extend(["", f"Previous Steps Completed:\n{previous_steps}"])
        if context.current_input:
            parts.extend(["", f"Current Input:\n{context.current_input}"])
        parts.extend(
            [
                "",
                "Execute this step. Provide a clear, concise output (2-4 sentences) in plain "
                "language that anyone can understand.",
            ]
        )
        user_prompt = "\n".join(parts)

    return [
        {"role": "system", "content": CATEGORY_PROMPTS.get(node.category, CATEGORY_PROMPTS["execute"])},
        {"role": "user", "content": user_prompt},
    ]


class CompletionStepExecutor:
    """Step Executor backed by an LLM chat completion."""

    def __init__(self, model_selector: ModelSelector, session_id: str | None = None):
        self.model_selector = model_selector
        self.session_id = session_id

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> StepResult:
        summary = is_summary_node(node)
        policy = self.model_selector.default_policy(
            temperature=0.5 if summary else 0.6,
            max_tokens=1500 if summary else 800,
        )
        try:
            output = await self.model_selector.complete(
                build_step_messages(node, context),
                policy=policy,
                session_id=self.session_id,
            )
        except Exception as exc:
            logger.warning("Completion failed for node %s: %s", node.id, exc)
            return StepResult(success=False, error=str(exc) or exc.__class__.__name__)
        if not output:
            return StepResult(success=False, error="Model returned an empty completion")
        return StepResult(success=True, output=output)


class DryRunStepExecutor:
    """Marks every step done with a deterministic description of what would run."""

    async def execute(self, node: WorkflowNode, context: ExecutionContext) -> StepResult:
        return StepResult(
            success=True,
            output=f"[dry-run] {node.title} ({node.category}) after {len(context.executed_nodes)} step(s)",
        )
