"""Shared helpers for CLI commands."""

from __future__ import annotations

import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

import click

from recordsync.core.errors import SyncEngineError
from recordsync.core.settings import Settings
from recordsync.server.service import SyncService


def load_settings(db_path: str | None = None) -> Settings:
    """Load settings from the environment, exiting on invalid values."""
    try:
        settings = Settings.from_env()
    except ValueError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)
    if db_path:
        settings = replace(settings, db_path=Path(db_path))
    return settings


def open_service(db_path: str | None = None) -> SyncService:
    """Open the sync service on the configured database."""
    return SyncService.from_settings(load_settings(db_path))


def read_json_file(path: str) -> dict[str, Any]:
    """Read a JSON object from a file, exiting on errors."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"Error: cannot read {path}: {e}", err=True)
        sys.exit(1)
    if not isinstance(data, dict):
        click.echo(f"Error: {path} must contain a JSON object", err=True)
        sys.exit(1)
    return data


def echo_json(data: Any) -> None:
    """Print data as indented JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def fail(error: SyncEngineError) -> None:
    """Print an engine error and exit with status 1."""
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


db_path_option = click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: RECORDSYNC_DB_PATH or ./recordsync.db).",
)
