"""Command-line interface for recordsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- serve: Run the API server and the job scheduler
- sources: Data source management (list, add)
- jobs: Sync job management (list, create, run, status, deactivate)
- conflicts: Conflict log (list, resolve)
"""

from __future__ import annotations

import click

from recordsync.cli.jobs import conflicts, jobs
from recordsync.cli.server import serve
from recordsync.cli.sources import sources


@click.group()
@click.version_option(package_name="recordsync")
def cli() -> None:
    """recordsync - scheduled record synchronization between data sources."""


cli.add_command(serve)
cli.add_command(sources)
cli.add_command(jobs)
cli.add_command(conflicts)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
