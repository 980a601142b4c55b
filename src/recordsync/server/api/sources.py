"""Data source API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from recordsync.core.config import DataSource
from recordsync.core.errors import ConfigurationError, DuplicateIdError
from recordsync.server.api.deps import get_service
from recordsync.server.schemas import SourceCreateRequest, SourceResponse, source_to_response
from recordsync.server.service import SyncService

router = APIRouter(prefix="/api/sources", tags=["sources"])


@router.post("", response_model=SourceResponse, status_code=status.HTTP_201_CREATED)
def register_source(
    request: SourceCreateRequest,
    service: SyncService = Depends(get_service),
) -> SourceResponse:
    """Register a data source."""
    try:
        source = DataSource.from_dict(request.to_descriptor_dict())
        service.register_data_source(source)
    except DuplicateIdError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return source_to_response(source)


@router.get("", response_model=list[SourceResponse])
def list_sources(service: SyncService = Depends(get_service)) -> list[SourceResponse]:
    """List registered data sources."""
    return [source_to_response(s) for s in service.list_data_sources()]
