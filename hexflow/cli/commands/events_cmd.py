"""Events CLI commands for hexflow."""

from __future__ import annotations

import time

import typer
from rich.markup import escape
from rich.table import Table

from hexflow.cli.utils import console, open_store, output_format, print_output, run_async
from hexflow.drivers.node_store import FileNodeStore
from hexflow.kernel.exceptions import StorageError
from hexflow.kernel.orchestration.events import (
    Event,
    EventFamily,
    GraphUpdateEvent,
    PipelineStageEvent,
    RuntimeExecutionEvent,
)

app = typer.Typer()

_FAMILY_STYLES = {
    EventFamily.GRAPH_UPDATE: "cyan",
    EventFamily.PIPELINE_STAGE: "magenta",
    EventFamily.RUNTIME_EXECUTION: "yellow",
}


def _subject(event: Event) -> str:
    if isinstance(event, GraphUpdateEvent):
        return f"{event.node_type}/{event.node_id}"
    if isinstance(event, PipelineStageEvent):
        return f"{event.pipeline_id}:{event.stage_id}"
    if isinstance(event, RuntimeExecutionEvent):
        return f"{event.action_type} [{event.execution_kind}]"
    return ""


def _status(event: Event) -> str:
    if isinstance(event, GraphUpdateEvent):
        return event.event_kind.value
    if isinstance(event, PipelineStageEvent):
        return event.stage_status.value
    if isinstance(event, RuntimeExecutionEvent):
        return event.status.value
    return ""


def _matches(event: Event, family: EventFamily | None, run_id: str | None) -> bool:
    if family is not None and event.family is not family:
        return False
    if run_id is not None:
        return isinstance(event, PipelineStageEvent) and event.run_id == run_id
    return True


async def _read(store: FileNodeStore) -> list[Event]:
    return [event async for event in store.read_events()]


def _load_events(store: FileNodeStore) -> list[Event]:
    try:
        return run_async(_read(store))
    except StorageError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


def _parse_family(family: str | None) -> EventFamily | None:
    if family is None:
        return None
    try:
        return EventFamily(family)
    except ValueError as e:
        choices = ", ".join(f.value for f in EventFamily)
        raise typer.BadParameter(f"expected one of: {choices}", param_hint="--family") from e


def _render_table(events: list[Event], title: str) -> None:
    table = Table(title=title)
    table.add_column("Timestamp", style="blue")
    table.add_column("Family")
    table.add_column("Type", style="green")
    table.add_column("Subject", style="white")
    table.add_column("Status")
    table.add_column("Error", style="red")
    for event in events:
        table.add_row(
            event.timestamp.isoformat(timespec="seconds"),
            f"[{_FAMILY_STYLES[event.family]}]{event.family.value}[/]",
            event.event_type,
            escape(_subject(event)),
            _status(event),
            escape(getattr(event, "error", None) or ""),
        )
    console.print(table)


@app.command("list")
def list_events(
    ctx: typer.Context,
    family: str | None = typer.Option(None, "--family", "-f", help="Event family to show"),
    run_id: str | None = typer.Option(None, "--run-id", help="Only stage events of this run"),
    limit: int = typer.Option(200, "--limit", "-n", min=1, help="Maximum events to show"),
    json_out: bool = typer.Option(False, "--json", help="Output in JSON"),
) -> None:
    """List recorded events in write order."""
    wanted = _parse_family(family)
    store = open_store(ctx)
    events = [e for e in _load_events(store) if _matches(e, wanted, run_id)][:limit]

    fmt = output_format(ctx, json_out)
    if fmt != "pretty":
        print_output([e.to_record() for e in events], fmt)
        return
    _render_table(events, title=f"Events ({len(events)})")


@app.command("tail")
def tail(
    ctx: typer.Context,
    family: str | None = typer.Option(None, "--family", "-f", help="Event family to show"),
    lines: int = typer.Option(10, "--lines", "-n", min=1, help="Number of trailing events"),
    follow: bool = typer.Option(False, "--follow", help="Keep polling for new events"),
    interval: float = typer.Option(1.0, "--interval", help="Polling interval in seconds"),
) -> None:
    """Show the most recent events, optionally following the log."""
    wanted = _parse_family(family)
    store = open_store(ctx)

    events = _load_events(store)
    seen = len(events)
    for event in [e for e in events if _matches(e, wanted, None)][-lines:]:
        console.print(escape(f"[{event.family.value}] {event.log_message()}"))

    while follow:
        time.sleep(interval)
        events = _load_events(store)
        for event in events[seen:]:
            if _matches(event, wanted, None):
                console.print(escape(f"[{event.family.value}] {event.log_message()}"))
        seen = len(events)
