#!/usr/bin/env python3
"""Main CLI entry point for claimfill."""
from __future__ import annotations

import logging
import sys

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .commands import detect, fill, live

console = Console()


def configure_logging(level: str) -> None:
    """Route library logging through rich on stderr."""

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.option("--log-level", default=None, help="Logging level (defaults to CLAIMFILL_LOG_LEVEL or INFO)")
@click.version_option(version="0.1.0", prog_name="claimfill")
def cli(log_level):
    """
    Claimfill - classify claim form fields and autofill them.

    Works on saved HTML pages (detect, fill) or a live browser page (live).
    """
    load_dotenv()
    from claimfill.config import get_settings

    get_settings.cache_clear()
    configure_logging(log_level or get_settings().log_level)


# Register all commands
cli.add_command(detect.detect_command)
cli.add_command(fill.fill_command)
cli.add_command(live.live_command)


def main():
    """Entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
