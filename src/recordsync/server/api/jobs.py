"""Sync job API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from recordsync.core.errors import ConfigurationError, JobNotFoundError, SyncRunError
from recordsync.server.api.deps import get_service
from recordsync.server.schemas import (
    ConflictResponse,
    JobCreateRequest,
    JobResponse,
    JobStatusResponse,
    JobSummaryResponse,
    SyncResultResponse,
    conflict_to_response,
    job_to_response,
    result_to_response,
    summary_to_response,
)
from recordsync.server.service import SyncService

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def _not_found(e: JobNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
def create_job(
    request: JobCreateRequest,
    service: SyncService = Depends(get_service),
) -> JobResponse:
    """Create a sync job."""
    try:
        job = service.create_sync_job(
            name=request.name,
            source_system=request.source_system,
            target_system=request.target_system,
            data_type=request.data_type,
            sync_type=request.sync_type,
            frequency_minutes=request.frequency_minutes,
            config=request.config,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return job_to_response(job)


@router.get("", response_model=list[JobSummaryResponse])
def list_jobs(service: SyncService = Depends(get_service)) -> list[JobSummaryResponse]:
    """List sync jobs with their run counts, newest first."""
    return [summary_to_response(s) for s in service.list_sync_jobs()]


@router.get("/{job_id}", response_model=JobStatusResponse)
def get_job_status(
    job_id: str,
    service: SyncService = Depends(get_service),
) -> JobStatusResponse:
    """Get a job and its recent results."""
    try:
        job_status = service.get_sync_job_status(job_id)
    except JobNotFoundError as e:
        raise _not_found(e) from e
    return JobStatusResponse(
        job=job_to_response(job_status.job),
        recent_results=[result_to_response(r) for r in job_status.recent_results],
    )


@router.post("/{job_id}/run", response_model=SyncResultResponse)
def run_job(
    job_id: str,
    service: SyncService = Depends(get_service),
) -> SyncResultResponse:
    """Run a job now and return its result.

    A system-level failure answers 502 with the stored error result.
    """
    try:
        result = service.execute_sync_job(job_id)
    except JobNotFoundError as e:
        raise _not_found(e) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except SyncRunError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": str(e),
                "result": result_to_response(e.result).model_dump(),
            },
        ) from e
    return result_to_response(result)


@router.post("/{job_id}/deactivate", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_job(
    job_id: str,
    service: SyncService = Depends(get_service),
) -> Response:
    """Deactivate a job and cancel its timer."""
    try:
        service.deactivate_sync_job(job_id)
    except JobNotFoundError as e:
        raise _not_found(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{job_id}/conflicts", response_model=list[ConflictResponse])
def list_job_conflicts(
    job_id: str,
    unresolved: bool = False,
    service: SyncService = Depends(get_service),
) -> list[ConflictResponse]:
    """List the conflicts logged by a job."""
    return [conflict_to_response(c) for c in service.list_conflicts(job_id, unresolved)]
