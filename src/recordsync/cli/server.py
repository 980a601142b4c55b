"""Server command for the recordsync CLI.

Commands:
- serve: Run the API server and the job scheduler
"""

from __future__ import annotations

import click


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port.")
@click.option("--no-scheduler", is_flag=True, help="Serve the API without running jobs.")
def serve(host: str, port: int, no_scheduler: bool) -> None:
    """Run the API server and the job scheduler.

    Configuration is read from RECORDSYNC_* environment variables.
    """
    import uvicorn

    from recordsync.cli.config import load_settings
    from recordsync.core.settings import setup_logging
    from recordsync.server.app import create_app
    from recordsync.server.service import SyncService

    settings = load_settings()
    setup_logging(settings.log_path, settings.log_level)

    service = SyncService.from_settings(settings)
    app = create_app(service, start_scheduler=not no_scheduler)
    try:
        uvicorn.run(app, host=host, port=port)
    finally:
        service.close()
