"""
HTTP API server for the workflow engine.

Stateless endpoints; graphs travel in the exchange format:
- GET  /health
- POST /workflow/validate
- POST /workflow/parse
- POST /workflow/order
- POST /workflow/execute
- POST /workflow/nodes/delete
- POST /workflow/edges
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from editor.graph_editor import GraphEditor
from execution.engine import WorkflowExecutionEngine
from execution.scheduler import execution_order_ids
from main import WORKFLOW_DRY_RUN, build_step_executor
from observability.trace import TraceRecorder
from planner.graph_exchange import GraphFormatError, export_graph, import_graph
from planner.service import PlannerService
from shared.models import TraceLog, WorkflowGraph

logger = logging.getLogger(__name__)


class IdeaRequest(BaseModel):
    idea: str = Field(default="")


class GraphRequest(BaseModel):
    graph: dict[str, Any]


class ExecuteRequest(BaseModel):
    idea: str = Field(default="")
    graph: dict[str, Any] | None = Field(default=None, description="Graph to run; parsed from idea when omitted")


class DeleteNodeRequest(BaseModel):
    graph: dict[str, Any]
    node_id: str


class ConnectRequest(BaseModel):
    graph: dict[str, Any]
    source: str
    target: str


def _trace_payload(entries: list[TraceLog]) -> list[dict[str, Any]]:
    return [entry.model_dump(mode="json", exclude_none=True) for entry in entries]


def _load_graph(payload: dict[str, Any]) -> WorkflowGraph:
    try:
        return import_graph(payload)
    except GraphFormatError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@asynccontextmanager
async def lifespan(_app: FastAPI):
    planner = PlannerService()
    step_executor, model_selector = build_step_executor(dry_run=WORKFLOW_DRY_RUN)
    _app.state.planner = planner
    _app.state.editor = GraphEditor(validator=planner.validator)
    _app.state.step_executor = step_executor
    yield
    if model_selector is not None:
        await model_selector.close()


app = FastAPI(
    title="Idea Flow Workflow API",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/workflow/validate")
def validate_idea(request: IdeaRequest) -> Any:
    assessment = app.state.planner.assess(request.idea)
    body = {"isValid": assessment.is_valid, "reason": assessment.reason}
    if not request.idea.strip():
        return JSONResponse(status_code=400, content=body)
    return body


@app.post("/workflow/parse")
def parse_idea(request: IdeaRequest) -> dict[str, Any]:
    result = app.state.planner.parse_idea(request.idea)
    return {
        "success": True,
        "graph": export_graph(result.graph),
        "trace": _trace_payload(result.trace),
    }


@app.post("/workflow/order")
def order_graph(request: GraphRequest) -> dict[str, Any]:
    graph = _load_graph(request.graph)
    return {"order": execution_order_ids(graph)}


@app.post("/workflow/execute")
async def execute_workflow(request: ExecuteRequest) -> dict[str, Any]:
    planner: PlannerService = app.state.planner
    if request.graph is None:
        parsed = planner.parse_idea(request.idea)
    else:
        parsed = planner.adopt_graph(request.graph, idea=request.idea)

    trace = TraceRecorder()
    trace.extend(parsed.trace)
    engine = WorkflowExecutionEngine(step_executor=app.state.step_executor, trace=trace)
    idea = request.idea.strip() or planner.decomposer.resolve_idea(None)
    outcome = await engine.run(parsed.graph, idea)

    context = outcome.context
    return {
        "runId": outcome.run_id,
        "status": outcome.status,
        "order": outcome.order,
        "graph": export_graph(outcome.graph),
        "context": {
            "originalIdea": context.original_idea,
            "executedNodes": [
                {"nodeId": entry.node_id, "title": entry.title, "output": entry.output}
                for entry in context.executed_nodes
            ],
            "currentInput": context.current_input,
        } if context is not None else None,
        "trace": _trace_payload(list(trace.entries)),
    }


@app.post("/workflow/nodes/delete")
def delete_node(request: DeleteNodeRequest) -> dict[str, Any]:
    graph = _load_graph(request.graph)
    updated = app.state.editor.delete_node(graph, request.node_id)
    return {"graph": export_graph(updated)}


@app.post("/workflow/edges")
def connect_nodes(request: ConnectRequest) -> dict[str, Any]:
    graph = _load_graph(request.graph)
    updated = app.state.editor.connect(graph, request.source, request.target)
    return {"graph": export_graph(updated)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
