"""Data source commands for the recordsync CLI.

Commands:
- sources list: List registered data sources
- sources add: Register a data source from a JSON file
"""

from __future__ import annotations

import click

from recordsync.cli.config import db_path_option, fail, open_service, read_json_file
from recordsync.core.errors import ConfigurationError


@click.group()
def sources() -> None:
    """Data source management commands."""


@sources.command("list")
@db_path_option
def list_sources(db_path: str | None) -> None:
    """List registered data sources."""
    service = open_service(db_path)
    try:
        items = service.list_data_sources()
        if not items:
            click.echo("No data sources registered.")
            return
        for source in items:
            state = "active" if source.is_active else "inactive"
            click.echo(f"{source.id:<24} {source.type.value:<10} {state:<9} {source.name}")
    finally:
        service.close()


@sources.command("add")
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False))
@db_path_option
def add_source(json_file: str, db_path: str | None) -> None:
    """Register a data source described in JSON_FILE.

    Example file:

        {"id": "shop_api", "name": "Shop", "type": "api",
         "connection": {"api_url": "https://shop.example.com/api"}}
    """
    descriptor = read_json_file(json_file)
    service = open_service(db_path)
    try:
        source_id = service.register_data_source(descriptor)
    except ConfigurationError as e:
        fail(e)
    else:
        click.echo(f"Registered data source: {source_id}")
    finally:
        service.close()
