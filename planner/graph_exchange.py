"""
Graph exchange — the serialization boundary for workflow graphs.

export_graph() writes the camelCase exchange format.
import_graph() accepts graphs from any external producer and coerces them
into WorkflowGraph without rejecting: missing ids are generated, unknown
categories and labels are coerced, malformed entries are skipped.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from planner.task_decomposer import UNTITLED_STEP
from shared.models import WorkflowEdge, WorkflowGraph, WorkflowNode

logger = logging.getLogger(__name__)


class GraphFormatError(ValueError):
    """Raised when a payload does not look like a graph at all."""


def export_graph(graph: WorkflowGraph) -> dict[str, Any]:
    return {
        "nodes": [
            node.model_dump(mode="json", by_alias=True, exclude_none=True)
            for node in graph.nodes
        ],
        "edges": [edge.model_dump(mode="json", exclude_none=True) for edge in graph.edges],
        "summary": graph.summary,
        "warnings": list(graph.warnings),
    }


def looks_like_graph(payload: Any) -> bool:
    return (
        isinstance(payload, dict)
        and isinstance(payload.get("nodes"), list)
        and isinstance(payload.get("edges"), list)
    )


def import_graph(payload: Any) -> WorkflowGraph:
    """Coerce an external payload (dict or JSON text) into a WorkflowGraph."""
    if isinstance(payload, str):
        try:
            payload = json.loads(_strip_code_fence(payload))
        except json.JSONDecodeError as exc:
            raise GraphFormatError(f"Graph payload is not valid JSON: {exc}") from exc
    if not looks_like_graph(payload):
        raise GraphFormatError("Graph payload must contain 'nodes' and 'edges' lists")

    nodes: list[WorkflowNode] = []
    seen_ids: set[str] = set()
    for idx, raw in enumerate(payload["nodes"], start=1):
        node = _coerce_node(raw, idx)
        if node is None:
            continue
        if node.id in seen_ids:
            logger.warning("Skipping duplicate node id '%s' from external graph", node.id)
            continue
        seen_ids.add(node.id)
        nodes.append(node)

    edges: list[WorkflowEdge] = []
    for idx, raw in enumerate(payload["edges"], start=1):
        edge = _coerce_edge(raw, idx)
        if edge is not None:
            edges.append(edge)

    summary = payload.get("summary")
    warnings = payload.get("warnings")
    return WorkflowGraph(
        nodes=nodes,
        edges=edges,
        summary=summary if isinstance(summary, str) else f"Detected {len(nodes)} steps",
        warnings=[str(item) for item in warnings] if isinstance(warnings, list) else [],
    )


def _coerce_node(raw: Any, idx: int) -> WorkflowNode | None:
    if not isinstance(raw, dict):
        return None
    status = str(raw.get("status") or "pending")
    output = raw.get("output")
    error = raw.get("error")
    # Only terminal states may carry results; done wins over blocked.
    if status == "done" and output is not None:
        error = None
    elif status == "blocked" and error is not None:
        output = None
    else:
        status, output, error = "pending", None, None
    search_query = raw.get("searchQuery", raw.get("search_query"))
    return WorkflowNode(
        id=str(raw.get("id") or f"node-{idx}"),
        title=str(raw.get("title") or UNTITLED_STEP),
        detail=str(raw.get("detail") or ""),
        category=raw.get("category"),
        status=status,
        tags=raw.get("tags"),
        output=str(output) if output is not None else None,
        error=str(error) if error is not None else None,
        search_query=str(search_query) if search_query else None,
    )


def _coerce_edge(raw: Any, idx: int) -> WorkflowEdge | None:
    if not isinstance(raw, dict):
        return None
    return WorkflowEdge(
        id=str(raw.get("id") or f"edge-{idx}"),
        source=str(raw.get("source") or ""),
        target=str(raw.get("target") or ""),
        label=raw.get("label"),
    )


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        body = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if body.rstrip().endswith("```"):
            body = body.rstrip()[:-3]
        return body.strip()
    return stripped
