"""Sync job commands for the recordsync CLI.

Commands:
- jobs list: List sync jobs with their run counts
- jobs create: Create a sync job from a JSON file
- jobs run: Run a sync job now
- jobs status: Show a job and its recent results
- jobs deactivate: Deactivate a sync job
- conflicts list: List the conflicts logged by a job
- conflicts resolve: Record how a conflict was settled
"""

from __future__ import annotations

import sys

import click

from recordsync.cli.config import (
    db_path_option,
    echo_json,
    fail,
    load_settings,
    open_service,
    read_json_file,
)
from recordsync.core.errors import ConfigurationError, SyncRunError
from recordsync.core.settings import setup_logging

_JOB_FIELDS = (
    "name",
    "source_system",
    "target_system",
    "data_type",
    "frequency_minutes",
)


@click.group()
def jobs() -> None:
    """Sync job management commands."""


@jobs.command("list")
@db_path_option
def list_jobs(db_path: str | None) -> None:
    """List sync jobs, newest first."""
    service = open_service(db_path)
    try:
        summaries = service.list_sync_jobs()
        if not summaries:
            click.echo("No sync jobs.")
            return
        for summary in summaries:
            job = summary.job
            state = "active" if job.is_active else "inactive"
            click.echo(
                f"{job.id}  {job.name}  {job.source_system} -> {job.target_system}  "
                f"{job.data_type}  every {job.frequency_minutes}m  {state}  "
                f"runs={summary.total_runs}"
            )
    finally:
        service.close()


@jobs.command("create")
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False))
@db_path_option
def create_job(json_file: str, db_path: str | None) -> None:
    """Create a sync job described in JSON_FILE.

    The file holds name, source_system, target_system, data_type,
    frequency_minutes, an optional sync_type (default: full) and config.
    """
    data = read_json_file(json_file)
    missing = [f for f in _JOB_FIELDS if f not in data]
    if missing:
        click.echo(f"Error: missing job fields: {', '.join(missing)}", err=True)
        sys.exit(1)

    service = open_service(db_path)
    try:
        job = service.create_sync_job(
            name=data["name"],
            source_system=data["source_system"],
            target_system=data["target_system"],
            data_type=data["data_type"],
            sync_type=data.get("sync_type", "full"),
            frequency_minutes=data["frequency_minutes"],
            config=data.get("config") or {},
        )
    except ConfigurationError as e:
        fail(e)
    else:
        click.echo(f"Created sync job: {job.id}")
    finally:
        service.close()


@jobs.command("run")
@click.argument("job_id")
@click.option("--verbose", "-v", is_flag=True, help="Log run progress to stdout.")
@db_path_option
def run_job(job_id: str, verbose: bool, db_path: str | None) -> None:
    """Run a sync job now and print its result."""
    if verbose:
        setup_logging(None, load_settings(db_path).log_level)

    service = open_service(db_path)
    try:
        result = service.execute_sync_job(job_id)
    except SyncRunError as e:
        echo_json(e.result.to_dict())
        fail(e)
    except ConfigurationError as e:
        fail(e)
    else:
        echo_json(result.to_dict())
        if result.records_error:
            sys.exit(2)
    finally:
        service.close()


@jobs.command("status")
@click.argument("job_id")
@db_path_option
def job_status(job_id: str, db_path: str | None) -> None:
    """Show a sync job and its recent results."""
    service = open_service(db_path)
    try:
        status = service.get_sync_job_status(job_id)
    except ConfigurationError as e:
        fail(e)
    else:
        echo_json(status.to_dict())
    finally:
        service.close()


@jobs.command("deactivate")
@click.argument("job_id")
@db_path_option
def deactivate_job(job_id: str, db_path: str | None) -> None:
    """Deactivate a sync job."""
    service = open_service(db_path)
    try:
        service.deactivate_sync_job(job_id)
    except ConfigurationError as e:
        fail(e)
    else:
        click.echo(f"Deactivated sync job: {job_id}")
    finally:
        service.close()


@click.group()
def conflicts() -> None:
    """Conflict log commands."""


@conflicts.command("list")
@click.argument("job_id")
@click.option("--unresolved", is_flag=True, help="Only show unresolved conflicts.")
@db_path_option
def list_conflicts(job_id: str, unresolved: bool, db_path: str | None) -> None:
    """List the conflicts logged by a sync job."""
    service = open_service(db_path)
    try:
        items = service.list_conflicts(job_id, unresolved)
        if not items:
            click.echo("No conflicts.")
            return
        for c in items:
            resolution = c.resolution.value if c.resolution else "unresolved"
            click.echo(
                f"#{c.id}  record={c.record_id}  {c.field_name}: "
                f"{c.source_value!r} (source) vs {c.target_value!r} (target)  "
                f"[{c.conflict_type.value}, {resolution}]"
            )
    finally:
        service.close()


@conflicts.command("resolve")
@click.argument("conflict_id", type=int)
@click.argument("resolution", type=click.Choice(["source_wins", "target_wins", "manual"]))
@db_path_option
def resolve_conflict(conflict_id: int, resolution: str, db_path: str | None) -> None:
    """Record how a conflict was settled."""
    service = open_service(db_path)
    try:
        service.resolve_conflict(conflict_id, resolution)
    except ConfigurationError as e:
        fail(e)
    else:
        click.echo(f"Conflict #{conflict_id} resolved: {resolution}")
    finally:
        service.close()
