"""Entry point for ``python -m hexflow``."""

from __future__ import annotations


def main() -> None:
    """Main entry point for module execution."""
    from hexflow.cli import main as cli_main

    cli_main()


if __name__ == "__main__":
    main()
