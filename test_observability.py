import json
import logging

import pytest

from observability.logger import Observability
from observability.trace import TraceRecorder


def _entries(caplog) -> list[dict]:
    return [json.loads(record.getMessage()) for record in caplog.records if record.name == "observability"]


def test_span_tags_entries_with_run_id(caplog):
    caplog.set_level(logging.INFO, logger="observability")
    obs = Observability("session-1").span("run-abc")

    obs.node_transition("node-1", "running")

    entry = _entries(caplog)[0]
    assert entry["session_id"] == "session-1"
    assert entry["run_id"] == "run-abc"
    assert (entry["event"], entry["node_id"], entry["status"]) == ("node_transition", "node-1", "running")


def test_blocked_transition_logs_warning(caplog):
    caplog.set_level(logging.INFO, logger="observability")

    Observability().node_transition("node-2", "blocked", error="boom")

    record = [r for r in caplog.records if r.name == "observability"][0]
    assert record.levelno == logging.WARNING


def test_measure_merges_fields_added_inside_block(caplog):
    caplog.set_level(logging.INFO, logger="observability")

    with Observability().measure("workflow_run", {"nodes": 3}) as fields:
        fields["done_count"] = 3

    entry = _entries(caplog)[0]
    assert entry["operation"] == "workflow_run"
    assert entry["success"] is True
    assert (entry["nodes"], entry["done_count"]) == (3, 3)


def test_measure_records_failure_and_reraises(caplog):
    caplog.set_level(logging.INFO, logger="observability")

    with pytest.raises(RuntimeError):
        with Observability().measure("model_call"):
            raise RuntimeError("timeout")

    entry = _entries(caplog)[0]
    assert entry["success"] is False
    assert entry["error"] == "timeout"


def test_trace_recorder_window():
    trace = TraceRecorder()
    for idx in range(60):
        trace.info(f"line {idx}")
    trace.error("failed", node_id="node-1")

    recent = trace.recent(50)

    assert len(trace) == 61
    assert len(recent) == 50
    assert recent[-1].level == "error"
    assert recent[-1].node_id == "node-1"
    assert trace.recent(0) == []
