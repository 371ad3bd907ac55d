"""Nodes CLI commands for hexflow."""

from __future__ import annotations

from collections import Counter

import typer
from rich.markup import escape
from rich.table import Table

from hexflow.cli.utils import console, open_store, output_format, print_output, run_async
from hexflow.kernel.domain.node import GraphQuery
from hexflow.kernel.exceptions import StorageError
from hexflow.kernel.graph import replay_graph_events

app = typer.Typer()


def _fail(error: StorageError) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    return typer.Exit(1)


@app.command("list")
def list_nodes(
    ctx: typer.Context,
    node_type: str | None = typer.Option(None, "--type", "-t", help="Only nodes of this type"),
    context_id: str | None = typer.Option(None, "--context", help="Only nodes of this context"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help="Maximum nodes to show"),
    json_out: bool = typer.Option(False, "--json", help="Output in JSON"),
) -> None:
    """List stored nodes."""
    store = open_store(ctx)
    query = GraphQuery(type=node_type, context_id=context_id, limit=limit)
    try:
        nodes = run_async(store.query(query.matches))
    except StorageError as e:
        raise _fail(e) from e
    if query.limit is not None:
        nodes = nodes[: query.limit]

    fmt = output_format(ctx, json_out)
    if fmt != "pretty":
        print_output([node.to_record() for node in nodes], fmt)
        return

    table = Table(title=f"Nodes ({len(nodes)})")
    table.add_column("Type", style="cyan")
    table.add_column("ID", style="green")
    table.add_column("Context", style="yellow")
    table.add_column("Fields", style="white")
    for node in nodes:
        table.add_row(
            escape(node.type),
            escape(node.id),
            escape(node.context_id),
            escape(", ".join(sorted(node.data))),
        )
    console.print(table)


@app.command("get")
def get_node(
    ctx: typer.Context,
    node_type: str = typer.Argument(..., help="Node type, e.g. domain:ContentAsset"),
    node_id: str = typer.Argument(..., help="Node id"),
) -> None:
    """Show one node as JSON."""
    store = open_store(ctx)
    try:
        node = run_async(store.get(node_type, node_id))
    except StorageError as e:
        raise _fail(e) from e
    if node is None:
        console.print(f"[red]Node {escape(node_type)}/{escape(node_id)} not found[/red]")
        raise typer.Exit(1)
    print_output(node.to_record(), "json")


@app.command("types")
def list_types(ctx: typer.Context) -> None:
    """List the node types present in the store."""
    store = open_store(ctx)
    try:
        types = run_async(store.list_types())
    except StorageError as e:
        raise _fail(e) from e
    for node_type in types:
        typer.echo(node_type)


@app.command("replay")
def replay(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json", help="Output in JSON"),
) -> None:
    """Rebuild the graph from the event log and compare it with stored nodes."""
    store = open_store(ctx)
    try:
        replayed = run_async(replay_graph_events(store.read_events()))
        stored = run_async(store.query())
    except StorageError as e:
        raise _fail(e) from e

    replayed_counts = Counter(node_type for node_type, _ in replayed)
    stored_counts = Counter(node.type for node in stored)
    stored_records = {node.key: node.to_record() for node in stored}
    drifted = sorted(
        f"{node_type}/{node_id}"
        for (node_type, node_id), node in replayed.items()
        if stored_records.get((node_type, node_id)) != node.to_record()
    )
    drifted += sorted(
        f"{node_type}/{node_id}" for node_type, node_id in stored_records.keys() - replayed.keys()
    )

    fmt = output_format(ctx, json_out)
    if fmt != "pretty":
        print_output(
            {
                "replayed": dict(sorted(replayed_counts.items())),
                "stored": dict(sorted(stored_counts.items())),
                "drift": drifted,
            },
            fmt,
        )
        return

    table = Table(title="Replay")
    table.add_column("Type", style="cyan")
    table.add_column("Replayed", style="green")
    table.add_column("Stored", style="yellow")
    for node_type in sorted(replayed_counts.keys() | stored_counts.keys()):
        table.add_row(
            escape(node_type), str(replayed_counts[node_type]), str(stored_counts[node_type])
        )
    console.print(table)
    if drifted:
        console.print(f"[red]{len(drifted)} node(s) differ from the event log:[/red]")
        for key in drifted:
            console.print(f"  {escape(key)}")
    else:
        console.print("[green]Stored nodes match the event log[/green]")
