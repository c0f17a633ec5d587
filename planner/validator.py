"""
Graph Validator — advisory structural checks.

Never repairs and never raises: findings are appended to graph.warnings.
Re-validating a graph replaces the validator's own previous findings and
keeps warnings written by anyone else.
"""

from __future__ import annotations

import logging

from shared.models import WorkflowGraph

logger = logging.getLogger(__name__)

MIN_RECOMMENDED_STEPS = 3

DANGLING_PREFIX = "Dangling edges:"
ORPHAN_PREFIX = "Orphan nodes:"
TOO_FEW_PREFIX = "Too few steps:"
STRUCTURAL_PREFIXES = (DANGLING_PREFIX, ORPHAN_PREFIX, TOO_FEW_PREFIX)


class GraphValidator:
    """Computes dangling-edge, orphan-node and size warnings."""

    def __init__(self, min_steps: int = MIN_RECOMMENDED_STEPS):
        self.min_steps = min_steps

    def validate(self, graph: WorkflowGraph) -> WorkflowGraph:
        carried = [w for w in graph.warnings if not w.startswith(STRUCTURAL_PREFIXES)]
        findings = self.check(graph)
        if findings:
            logger.info("Graph validation produced %d warning(s)", len(findings))
        return graph.model_copy(update={"warnings": [*carried, *findings]})

    def check(self, graph: WorkflowGraph) -> list[str]:
        warnings: list[str] = []
        if len(graph.nodes) < self.min_steps:
            warnings.append(
                f"{TOO_FEW_PREFIX} add more detail so the flow has at least "
                f"{self.min_steps} distinct steps."
            )

        dangling = self.dangling_edges(graph)
        if dangling:
            warnings.append(
                f"{DANGLING_PREFIX} {len(dangling)} edge(s) reference missing nodes "
                f"({', '.join(dangling)})."
            )

        orphans = self.orphan_nodes(graph)
        if orphans:
            warnings.append(
                f"{ORPHAN_PREFIX} {len(orphans)} node(s) have no incoming connections "
                f"({', '.join(orphans)})."
            )
        return warnings

    def dangling_edges(self, graph: WorkflowGraph) -> list[str]:
        node_ids = set(graph.node_ids())
        return [
            edge.id
            for edge in graph.edges
            if edge.source not in node_ids or edge.target not in node_ids
        ]

    def orphan_nodes(self, graph: WorkflowGraph) -> list[str]:
        targets = {edge.target for edge in graph.edges}
        return [node.id for node in graph.nodes[1:] if node.id not in targets]
