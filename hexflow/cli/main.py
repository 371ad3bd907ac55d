"""hexflow CLI - inspection of a hexflow state directory."""

from __future__ import annotations

import typer

from hexflow import __version__
from hexflow.cli.commands import events_cmd, nodes_cmd
from hexflow.cli.utils import console
from hexflow.kernel.logging import configure_logging


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold blue]hexflow[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


app = typer.Typer(
    name="hexflow",
    help="hexflow - inspect the node store and event log of a hexflow runtime.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

app.add_typer(events_cmd.app, name="events", help="Inspect the event log")
app.add_typer(nodes_cmd.app, name="nodes", help="Inspect stored nodes")


@app.callback()
def callback(
    ctx: typer.Context,
    *,
    state_dir: str | None = typer.Option(
        None, "--state-dir", "-s", envvar="HEXFLOW_STATE_DIR", help="State directory to inspect"
    ),
    config: str | None = typer.Option(None, "--config", "-c", help="kind: Config YAML path"),
    json_out: bool = typer.Option(False, "--json", help="Output machine-readable JSON"),
    yaml_out: bool = typer.Option(False, "--yaml", help="Output machine-readable YAML"),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level: debug|info|warning|error"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        is_eager=True,
        callback=_version_callback,
        help="Show version and exit",
    ),
) -> None:
    """hexflow CLI.

    Global flags are parsed here and stored on `ctx.obj` for subcommands.
    """
    if ctx.obj is None:
        ctx.obj = {}

    output_format = "pretty"
    if json_out:
        output_format = "json"
    elif yaml_out:
        output_format = "yaml"

    if log_level:
        configure_logging(level=log_level.upper(), format="console")  # type: ignore[arg-type]

    ctx.obj.update({
        "state_dir": state_dir,
        "config": config,
        "output_format": output_format,
    })


def main() -> None:
    """Main CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
