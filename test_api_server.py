from fastapi.testclient import TestClient

from api.server import app
from execution.step_executor import DryRunStepExecutor
from planner.graph_exchange import export_graph
from planner.service import PlannerService
from shared.models import StepResult

IDEA = "Collect feedback. Analyze sentiment. Notify team if negative."


def _client() -> TestClient:
    return TestClient(app)


def _graph_payload() -> dict:
    return export_graph(PlannerService().parse_idea(IDEA).graph)


def test_health():
    with _client() as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_validate_rejects_empty_idea_with_400():
    with _client() as client:
        empty = client.post("/workflow/validate", json={"idea": "  "})
        valid = client.post("/workflow/validate", json={"idea": IDEA})

    assert empty.status_code == 400
    assert empty.json() == {"isValid": False, "reason": "Input is empty"}
    assert valid.json() == {"isValid": True, "reason": "Passed basic validation"}


def test_parse_returns_exchange_graph_and_trace():
    with _client() as client:
        body = client.post("/workflow/parse", json={"idea": IDEA}).json()

    assert body["success"] is True
    assert [node["category"] for node in body["graph"]["nodes"]] == ["collect", "analyze", "notify"]
    assert [edge["label"] for edge in body["graph"]["edges"]] == ["next", "branch"]
    assert body["trace"][0]["message"] == "Parsed 3 steps with 2 connections."


def test_order_endpoint_and_bad_graph():
    with _client() as client:
        ok = client.post("/workflow/order", json={"graph": _graph_payload()})
        bad = client.post("/workflow/order", json={"graph": {"steps": []}})

    assert ok.json() == {"order": ["node-1", "node-2", "node-3"]}
    assert bad.status_code == 422


def test_execute_runs_graph_with_configured_executor():
    with _client() as client:
        app.state.step_executor = DryRunStepExecutor()
        body = client.post("/workflow/execute", json={"idea": IDEA}).json()

    assert body["status"] == "completed"
    assert body["order"] == ["node-1", "node-2", "node-3"]
    assert all(node["status"] == "done" for node in body["graph"]["nodes"])
    assert body["context"]["originalIdea"] == IDEA
    assert [entry["nodeId"] for entry in body["context"]["executedNodes"]] == body["order"]
    assert any(entry["message"] == "Workflow execution complete" for entry in body["trace"])


def test_execute_reports_blocked_nodes():
    class _FailSecond:
        async def execute(self, node, context):
            if node.id == "node-2":
                return StepResult(success=False, error="model offline")
            return StepResult(success=True, output=f"{node.title} ok")

    with _client() as client:
        app.state.step_executor = _FailSecond()
        body = client.post("/workflow/execute", json={"idea": IDEA, "graph": _graph_payload()}).json()

    statuses = {node["id"]: (node["status"], node.get("error")) for node in body["graph"]["nodes"]}
    assert statuses == {
        "node-1": ("done", None),
        "node-2": ("blocked", "model offline"),
        "node-3": ("done", None),
    }


def test_delete_and_connect_endpoints():
    with _client() as client:
        deleted = client.post("/workflow/nodes/delete", json={"graph": _graph_payload(), "node_id": "node-2"}).json()
        connected = client.post(
            "/workflow/edges",
            json={"graph": deleted["graph"], "source": "node-3", "target": "node-1"},
        ).json()

    assert [(edge["source"], edge["target"]) for edge in deleted["graph"]["edges"]] == [("node-1", "node-3")]
    assert deleted["graph"]["edges"][0]["label"] == "branch"
    assert len(connected["graph"]["edges"]) == 2
