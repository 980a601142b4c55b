"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from recordsync.server.api import conflicts, health, jobs, sources

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(sources.router)
router.include_router(jobs.router)
router.include_router(conflicts.router)
