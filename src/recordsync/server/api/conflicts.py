"""Conflict API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from recordsync.core.errors import ConfigurationError
from recordsync.core.types import ConflictResolution
from recordsync.server.api.deps import get_service
from recordsync.server.schemas import (
    ConflictResolveRequest,
    ConflictResponse,
    conflict_to_response,
)
from recordsync.server.service import SyncService

router = APIRouter(prefix="/api/conflicts", tags=["conflicts"])


@router.post("/{conflict_id}/resolve", response_model=ConflictResponse)
def resolve_conflict(
    conflict_id: int,
    request: ConflictResolveRequest,
    service: SyncService = Depends(get_service),
) -> ConflictResponse:
    """Record how a conflict was settled."""
    try:
        resolution = ConflictResolution(request.resolution)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Resolution must be one of {[r.value for r in ConflictResolution]}",
        ) from e

    try:
        conflict = service.resolve_conflict(conflict_id, resolution)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return conflict_to_response(conflict)
