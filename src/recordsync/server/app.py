"""FastAPI application for the recordsync server.

This module creates and configures the FastAPI application with:
- REST API for data sources, sync jobs and conflicts
- Scheduler started and stopped with the application lifespan

Usage:
    uvicorn recordsync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from recordsync import __version__
from recordsync.core.settings import Settings, setup_logging
from recordsync.server.api.router import router as api_router
from recordsync.server.service import SyncService

logger = logging.getLogger(__name__)


def create_app(service: SyncService, start_scheduler: bool = True) -> FastAPI:
    """Create FastAPI application around a sync service.

    Args:
        service: Service exposed by the API.
        start_scheduler: Schedule active jobs on startup.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("recordsync server starting")
        logger.info("=" * 60)
        logger.info("  Database: %s", service.db.path)
        logger.info("  Sources:  %d", len(service.list_data_sources()))
        if start_scheduler:
            scheduled = service.start_scheduler()
            logger.info("  Jobs:     %d scheduled", scheduled)
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("recordsync server shutting down")
        service.stop_scheduler()

    application = FastAPI(
        title="recordsync",
        description="Scheduled record synchronization between data sources",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.service = service
    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    settings = Settings.from_env()
    setup_logging(settings.log_path, settings.log_level)
    return create_app(SyncService.from_settings(settings))
