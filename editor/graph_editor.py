"""
Graph Editor — structural edits over immutable graph snapshots.

Every operation returns a new, re-validated WorkflowGraph; the input graph is
never touched. Edges are indexed by (source, target) so no edit ever creates a
duplicate pair.
"""

from __future__ import annotations

import logging
import uuid

from planner.validator import GraphValidator
from shared.models import WorkflowEdge, WorkflowGraph

logger = logging.getLogger(__name__)

DEFAULT_BRIDGE_LABEL = "follow"


class GraphEditor:
    """Node deletion with edge bridging and idempotent edge creation."""

    def __init__(self, validator: GraphValidator | None = None):
        self.validator = validator or GraphValidator()

    def delete_node(self, graph: WorkflowGraph, node_id: str) -> WorkflowGraph:
        """
        Remove a node and reconnect every predecessor to every successor.

        A node with I incoming and O outgoing edges yields I×O bridge edges,
        minus pairs that are already connected.
        """
        if graph.get_node(node_id) is None:
            logger.info("Delete ignored: node %s not found", node_id)
            return graph

        # Self-loops on the deleted node are dropped, never bridged.
        incoming = [edge for edge in graph.edges if edge.target == node_id and edge.source != node_id]
        outgoing = [edge for edge in graph.edges if edge.source == node_id and edge.target != node_id]

        remaining_nodes = [node for node in graph.nodes if node.id != node_id]
        remaining_edges = [
            edge for edge in graph.edges if edge.source != node_id and edge.target != node_id
        ]
        existing_pairs = {(edge.source, edge.target) for edge in remaining_edges}

        bridges: list[WorkflowEdge] = []
        for in_edge in incoming:
            for out_edge in outgoing:
                pair = (in_edge.source, out_edge.target)
                if pair in existing_pairs:
                    continue
                existing_pairs.add(pair)
                bridges.append(
                    WorkflowEdge(
                        id=f"edge-bridge-{in_edge.source}-{out_edge.target}-{uuid.uuid4().hex[:8]}",
                        source=in_edge.source,
                        target=out_edge.target,
                        label=out_edge.label or in_edge.label or DEFAULT_BRIDGE_LABEL,
                    )
                )

        logger.info(
            "Deleted node %s: %d incoming, %d outgoing, %d bridge edge(s)",
            node_id,
            len(incoming),
            len(outgoing),
            len(bridges),
        )
        updated = graph.model_copy(
            update={"nodes": remaining_nodes, "edges": [*remaining_edges, *bridges]}
        )
        return self.validator.validate(updated)

    def connect(self, graph: WorkflowGraph, source: str, target: str) -> WorkflowGraph:
        """Add source → target unless that exact pair already exists."""
        if graph.has_edge(source, target):
            return graph
        edge = WorkflowEdge(id=f"edge-{uuid.uuid4().hex[:8]}", source=source, target=target)
        updated = graph.model_copy(update={"edges": [*graph.edges, edge]})
        return self.validator.validate(updated)
