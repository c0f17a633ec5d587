"""
Planner Layer — Turns an idea into a validated workflow graph.

Responsibility:
- Advisory idea pre-check (never blocks)
- Heuristic decomposition → classification → linear chain
- Intake of graphs from external producers (fail-soft, local fallback)
- Validation after every build, with a trace of what was detected
"""

from __future__ import annotations

import logging
from typing import Any

from observability.trace import TraceRecorder
from planner.classifier import StepClassifier
from planner.graph_builder import GraphBuilder
from planner.graph_exchange import GraphFormatError, import_graph
from planner.idea_validator import assess_idea
from planner.task_decomposer import TaskDecomposer
from planner.validator import GraphValidator
from shared.models import IdeaAssessment, ParseResult, WorkflowGraph

logger = logging.getLogger(__name__)

EXTERNAL_FALLBACK_WARNING = "External graph was invalid. Used fallback local parser instead."


class PlannerService:
    """Service to generate workflow graphs from ideas."""

    def __init__(
        self,
        decomposer: TaskDecomposer | None = None,
        classifier: StepClassifier | None = None,
        validator: GraphValidator | None = None,
    ):
        self.decomposer = decomposer or TaskDecomposer()
        self.classifier = classifier or StepClassifier()
        self.builder = GraphBuilder(decomposer=self.decomposer, classifier=self.classifier)
        self.validator = validator or GraphValidator()

    def assess(self, idea: str | None) -> IdeaAssessment:
        return assess_idea(idea)

    def parse_idea(self, idea: str | None) -> ParseResult:
        """
        Convert an idea into a graph.

        Flow: idea → (fallback if empty) → segments → nodes/edges → validated graph
        """
        trace = TraceRecorder()
        assessment = self.assess(idea)
        if not assessment.is_valid:
            trace.warn(f"Idea looks weak ({assessment.reason}); structuring it anyway.")

        resolved = self.decomposer.resolve_idea(idea)
        if resolved != (idea or "").strip():
            trace.info("Input had no usable steps; using the built-in sample idea.")

        graph = self.builder.build(self.decomposer.split(resolved))
        graph = self.validator.validate(graph)
        self._record_graph(trace, graph)
        logger.info(
            "Parsed idea into %d nodes and %d edges",
            len(graph.nodes),
            len(graph.edges),
        )
        return ParseResult(graph=graph, trace=list(trace.entries))

    def adopt_graph(self, payload: Any, idea: str | None = None) -> ParseResult:
        """Accept a graph from an external producer, falling back to local parsing."""
        try:
            graph = import_graph(payload)
        except GraphFormatError as exc:
            logger.warning("External graph rejected: %s", exc)
            local = self.parse_idea(idea)
            graph = local.graph.model_copy(
                update={"warnings": [*local.graph.warnings, EXTERNAL_FALLBACK_WARNING]}
            )
            trace = TraceRecorder()
            trace.extend(local.trace)
            trace.error(f"External graph rejected: {exc}")
            trace.warn(EXTERNAL_FALLBACK_WARNING)
            return ParseResult(graph=graph, trace=list(trace.entries))

        graph = self.validator.validate(graph)
        trace = TraceRecorder()
        self._record_graph(trace, graph, source="external producer")
        return ParseResult(graph=graph, trace=list(trace.entries))

    def validate(self, graph: WorkflowGraph) -> WorkflowGraph:
        return self.validator.validate(graph)

    def _record_graph(self, trace: TraceRecorder, graph: WorkflowGraph, source: str | None = None) -> None:
        origin = f" from {source}" if source else ""
        trace.info(f"Parsed {len(graph.nodes)} steps with {len(graph.edges)} connections{origin}.")
        for node in graph.nodes:
            trace.info(f'Step "{node.title}" tagged as {node.category}.', node_id=node.id)
        for warning in graph.warnings:
            trace.warn(warning)
