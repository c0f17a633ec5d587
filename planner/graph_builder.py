"""
Graph Builder — turns ordered step segments into a linear workflow chain.
"""

from __future__ import annotations

import re

from planner.classifier import StepClassifier
from planner.task_decomposer import TaskDecomposer
from shared.models import EdgeLabel, WorkflowEdge, WorkflowGraph, WorkflowNode

_CONDITIONAL = re.compile(r"\b(if|when)\b", re.IGNORECASE)
_CONTINUATION = re.compile(r"\b(then|after|once)\b", re.IGNORECASE)


def edge_label_for(source_detail: str, target_detail: str) -> EdgeLabel:
    """Heuristic label for the edge source → target."""
    if _CONDITIONAL.search(source_detail or "") or _CONDITIONAL.search(target_detail or ""):
        return "branch"
    if _CONTINUATION.search(target_detail or ""):
        return "follow"
    return "next"


class GraphBuilder:
    """Builds nodes from segments and links consecutive nodes."""

    def __init__(
        self,
        decomposer: TaskDecomposer | None = None,
        classifier: StepClassifier | None = None,
    ):
        self.decomposer = decomposer or TaskDecomposer()
        self.classifier = classifier or StepClassifier()

    def build(self, segments: list[str]) -> WorkflowGraph:
        nodes = [self.build_node(idx, segment) for idx, segment in enumerate(segments, start=1)]
        edges = [
            WorkflowEdge(
                id=f"edge-{idx}",
                source=source.id,
                target=target.id,
                label=edge_label_for(source.detail, target.detail),
            )
            for idx, (source, target) in enumerate(zip(nodes, nodes[1:]), start=1)
        ]
        return WorkflowGraph(
            nodes=nodes,
            edges=edges,
            summary=f"Detected {len(nodes)} steps",
            warnings=[],
        )

    def build_node(self, index: int, segment: str) -> WorkflowNode:
        return WorkflowNode(
            id=f"node-{index}",
            title=self.decomposer.title_for(segment),
            detail=segment,
            category=self.classifier.infer_category(segment),
            status="pending",
            tags=self.classifier.infer_tags(segment),
        )
