"""
Idea Flow — Main CLI Entrypoint.

Wires all layers and renders workflows in the terminal.
"""

import argparse
import asyncio
import json
import logging
import os

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from editor.graph_editor import GraphEditor
from execution.engine import WorkflowExecutionEngine
from execution.run_event_store import RunEventStore
from execution.step_executor import CompletionStepExecutor, DryRunStepExecutor, StepExecutor
from memory.store import KeyValueStore, SQLiteKeyValueStore
from models.selector import ModelSelector
from orchestrator.session import CACHE_NAMESPACE, WorkflowSession
from planner.graph_exchange import export_graph
from planner.service import PlannerService
from shared.models import WorkflowGraph
from shared.workflow_contracts import RunOutcome

# ─── Configuration ──────────────────────────────────────────────

logger = logging.getLogger(__name__)

# Ensure local .env is loaded before reading runtime configuration.
load_dotenv(override=False)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
WORKFLOW_CACHE_DB_PATH = os.getenv("WORKFLOW_CACHE_DB_PATH", "workflow_cache.db").strip()
WORKFLOW_CACHE_TTL_SECONDS = float(os.getenv("WORKFLOW_CACHE_TTL_SECONDS", "86400"))
RUN_EVENTS_DB_PATH = os.getenv("RUN_EVENTS_DB_PATH", "").strip()
WORKFLOW_DRY_RUN = os.getenv("WORKFLOW_DRY_RUN", "false").strip().lower() in (
    "1",
    "true",
    "yes",
    "on",
)
TRACE_WINDOW = 50

# ─── Rich Console ───────────────────────────────────────────────

console = Console()

_STATUS_STYLE = {
    "pending": "dim",
    "running": "cyan",
    "done": "green",
    "blocked": "red",
}


def setup_logging() -> None:
    """Configure logging."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_step_executor(dry_run: bool = WORKFLOW_DRY_RUN) -> tuple[StepExecutor, ModelSelector | None]:
    if dry_run:
        return DryRunStepExecutor(), None
    model_selector = ModelSelector()
    return CompletionStepExecutor(model_selector), model_selector


def build_pipeline(
    dry_run: bool = WORKFLOW_DRY_RUN,
    cache: KeyValueStore | None = None,
) -> tuple[WorkflowSession, ModelSelector | None, RunEventStore | None]:
    """Wire planner, engine, editor, cache and optional event store into a session."""
    planner = PlannerService()
    step_executor, model_selector = build_step_executor(dry_run=dry_run)
    engine = WorkflowExecutionEngine(step_executor=step_executor)

    event_store: RunEventStore | None = None
    if RUN_EVENTS_DB_PATH:
        event_store = RunEventStore(db_path=RUN_EVENTS_DB_PATH)
        engine.subscribe(event_store)

    if cache is None and WORKFLOW_CACHE_DB_PATH:
        cache = SQLiteKeyValueStore(db_path=WORKFLOW_CACHE_DB_PATH)

    session = WorkflowSession(
        planner=planner,
        engine=engine,
        editor=GraphEditor(validator=planner.validator),
        cache=cache,
        cache_ttl_seconds=WORKFLOW_CACHE_TTL_SECONDS,
    )
    return session, model_selector, event_store


def render_graph(graph: WorkflowGraph, order: list[str] | None = None) -> None:
    """Render workflow steps, connections and warnings using Rich."""
    table = Table(
        title=f"🧩 {graph.summary or 'Workflow'}",
        box=box.SIMPLE_HEAVY,
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("#", style="dim")
    table.add_column("Step", style="bold white")
    table.add_column("Category", style="magenta")
    table.add_column("Tags", style="white")
    table.add_column("Status")

    position = {node_id: idx for idx, node_id in enumerate(order or [], start=1)}
    for node in graph.nodes:
        table.add_row(
            str(position.get(node.id, "")),
            node.title,
            node.category,
            ", ".join(node.tags),
            Text(node.status, style=_STATUS_STYLE.get(node.status, "white")),
        )
    console.print(table)

    if graph.edges:
        edges = Table(box=box.MINIMAL, show_header=False, padding=(0, 1))
        edges.add_column("Edge", style="dim")
        edges.add_column("Connection", style="white")
        for edge in graph.edges:
            edges.add_row(edge.id, f"{edge.source} → {edge.target} ({edge.label or '-'})")
        console.print(Panel(edges, title="🔗 Connections", border_style="dim", box=box.ROUNDED))

    for warning in graph.warnings:
        console.print(Text(f"  ⚠️  {warning}", style="yellow"))


def render_outcome(outcome: RunOutcome) -> None:
    """Render a finished run: per-node output/error plus totals."""
    if outcome.status == "rejected":
        console.print(Panel(
            Text("Another run is already in progress.", style="bold yellow"),
            title="⏳ Rejected",
            border_style="yellow",
            box=box.ROUNDED,
        ))
        return

    for node_id in outcome.order:
        node = outcome.graph.get_node(node_id)
        if node is None:
            continue
        if node.status == "done":
            console.print(Panel(
                Text(node.output or "", style="white"),
                title=f"✅ {node.title}",
                border_style="green",
                box=box.ROUNDED,
            ))
        elif node.status == "blocked":
            console.print(Panel(
                Text(f"Error: {node.error}", style="bold red"),
                title=f"❌ {node.title}",
                border_style="red",
                box=box.ROUNDED,
            ))

    style = "green" if outcome.succeeded else "yellow"
    console.print(Text(
        f"Run {outcome.run_id} {outcome.status}: {outcome.done_count} done, "
        f"{outcome.blocked_count} blocked, {outcome.pending_count} pending",
        style=f"bold {style}",
    ))


def command_validate(idea: str) -> None:
    assessment = PlannerService().assess(idea)
    style = "green" if assessment.is_valid else "yellow"
    console.print(Text(f"{'valid' if assessment.is_valid else 'invalid'}: {assessment.reason}", style=style))


async def command_parse(idea: str, as_json: bool = False, use_cache: bool = True) -> None:
    session, _model_selector, _event_store = build_pipeline(dry_run=True)
    try:
        graph = await session.generate(idea, use_cache=use_cache)
        if as_json:
            console.print_json(json.dumps(export_graph(graph)))
            return
        render_graph(graph, order=session.execution_order())
    finally:
        if session.cache is not None:
            session.cache.close()


async def command_run(idea: str, dry_run: bool, use_cache: bool = True) -> None:
    session, model_selector, event_store = build_pipeline(dry_run=dry_run)
    try:
        await session.generate(idea, use_cache=use_cache)
        outcome = await session.run()
        render_graph(outcome.graph, order=outcome.order)
        render_outcome(outcome)
        for entry in session.trace.recent(TRACE_WINDOW):
            console.print(Text(f"[{entry.level}] {entry.message}", style="dim"))
    finally:
        if model_selector is not None:
            await model_selector.close()
        if event_store is not None:
            event_store.close()
        if session.cache is not None:
            session.cache.close()


def command_cache_clear(idea: str | None) -> None:
    store = SQLiteKeyValueStore(db_path=WORKFLOW_CACHE_DB_PATH)
    try:
        if idea:
            removed = store.delete(idea, namespace=CACHE_NAMESPACE)
            console.print(f"Cache entry {'removed' if removed else 'not found'}.")
        else:
            console.print(f"Purged {store.purge_expired()} expired cache entries.")
    finally:
        store.close()


def main() -> None:
    """Entrypoint with CLI args."""
    setup_logging()

    parser = argparse.ArgumentParser(description="Idea Flow — turn ideas into executable workflows")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    validate_parser = subparsers.add_parser("validate", help="Check whether an idea looks meaningful")
    validate_parser.add_argument("idea", help="Idea text")

    parse_parser = subparsers.add_parser("parse", help="Structure an idea into a workflow graph")
    parse_parser.add_argument("idea", help="Idea text")
    parse_parser.add_argument("--json", action="store_true", help="Print the graph exchange JSON")
    parse_parser.add_argument("--no-cache", action="store_true", help="Ignore cached graphs")

    run_parser = subparsers.add_parser("run", help="Structure and execute an idea")
    run_parser.add_argument("idea", help="Idea text")
    run_parser.add_argument("--dry-run", action="store_true", help="Do not call the model")
    run_parser.add_argument("--no-cache", action="store_true", help="Ignore cached graphs")

    cache_parser = subparsers.add_parser("cache-clear", help="Drop a cached graph or purge expired ones")
    cache_parser.add_argument("idea", nargs="?", default=None, help="Idea whose cached graph to drop")

    args = parser.parse_args()

    if args.command == "validate":
        command_validate(args.idea)
    elif args.command == "parse":
        asyncio.run(command_parse(args.idea, as_json=args.json, use_cache=not args.no_cache))
    elif args.command == "run":
        try:
            asyncio.run(command_run(args.idea, dry_run=args.dry_run or WORKFLOW_DRY_RUN, use_cache=not args.no_cache))
        except KeyboardInterrupt:
            pass
    elif args.command == "cache-clear":
        command_cache_clear(args.idea)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
