"""CLI helper utilities for hexflow commands."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, Protocol, TypeVar

import typer
import yaml
from rich.console import Console
from rich.markup import escape

from hexflow.compiler.config_loader import load_config
from hexflow.drivers.node_store import FileNodeStore
from hexflow.kernel.exceptions import ConfigurationError
from hexflow.kernel.utils.serialization import dumps_blob

T = TypeVar("T")


class ContextProtocol(Protocol):
    """Protocol for common interface between Click and Typer contexts."""

    @property
    def obj(self) -> dict[str, Any] | None: ...


console = Console()


def output_format(ctx: ContextProtocol | None, json_out: bool = False) -> str:
    if json_out:
        return "json"
    settings = getattr(ctx, "obj", None)
    if isinstance(settings, dict):
        return settings.get("output_format", "pretty")
    return "pretty"


def print_output(obj: Any, fmt: str) -> None:
    """Print ``obj`` as JSON, YAML or a rich pretty-print."""
    if fmt == "json":
        typer.echo(dumps_blob(obj).decode())
    elif fmt == "yaml":
        typer.echo(yaml.safe_dump(obj, sort_keys=False))
    elif isinstance(obj, (str, int, float)):
        typer.echo(str(obj))
    else:
        console.print(obj)


def resolve_state_dir(ctx: ContextProtocol) -> Path:
    """State directory from ``--state-dir`` or the loaded configuration."""
    settings = ctx.obj or {}
    if state_dir := settings.get("state_dir"):
        return Path(state_dir).expanduser()

    config = load_config(settings.get("config"))
    if config.store.backend != "file":
        raise ConfigurationError(
            "store", f"'{config.store.backend}' backend has no state directory to inspect"
        )
    return config.store.resolved_path


def open_store(ctx: ContextProtocol) -> FileNodeStore:
    """Open the file store for inspection, exiting if it does not exist."""
    try:
        state_dir = resolve_state_dir(ctx)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    if not state_dir.is_dir():
        console.print(f"[red]Error:[/red] No hexflow state found at {escape(str(state_dir))}")
        raise typer.Exit(1)
    return FileNodeStore(state_dir)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)
