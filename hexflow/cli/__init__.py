"""Command-line interface for hexflow."""

from hexflow.cli.main import app, main

__all__ = ["app", "main"]
