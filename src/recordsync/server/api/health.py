"""Health check API route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from recordsync.server.api.deps import get_service
from recordsync.server.schemas import HealthResponse
from recordsync.server.service import SyncService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(service: SyncService = Depends(get_service)) -> HealthResponse:
    """Check server health."""
    return HealthResponse(
        status="ok",
        scheduler_running=service.scheduler.running,
        scheduled_jobs=len(service.scheduler.scheduled_job_ids()),
    )
