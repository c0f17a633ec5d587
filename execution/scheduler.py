"""
Scheduler — dependency-respecting execution order for a workflow graph.

Kahn's algorithm with ties broken by node-list order. When a cycle leaves
nodes unvisited, they are appended in node-list order so that every node is
scheduled exactly once.
"""

from __future__ import annotations

import logging
from collections import deque

from shared.models import WorkflowGraph, WorkflowNode

logger = logging.getLogger(__name__)


def execution_order(graph: WorkflowGraph) -> list[WorkflowNode]:
    """Return every node of the graph exactly once, dependencies first."""
    node_map = {node.id: node for node in graph.nodes}
    in_degree: dict[str, int] = {node_id: 0 for node_id in node_map}
    adjacency: dict[str, list[str]] = {node_id: [] for node_id in node_map}

    for edge in graph.edges:
        # Dangling edges are reported by the validator; they do not constrain order.
        if edge.source not in node_map or edge.target not in node_map:
            continue
        adjacency[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue: deque[str] = deque(node.id for node in graph.nodes if in_degree[node.id] == 0)
    visited: set[str] = set()
    result: list[WorkflowNode] = []

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        result.append(node_map[current])
        for neighbor in adjacency[current]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(result) < len(node_map):
        remaining = [node for node in graph.nodes if node.id not in visited]
        logger.warning(
            "Cycle detected; appending %d unscheduled node(s) in list order: %s",
            len(remaining),
            [node.id for node in remaining],
        )
        result.extend(remaining)

    return result


def execution_order_ids(graph: WorkflowGraph) -> list[str]:
    return [node.id for node in execution_order(graph)]
