"""Import and snapshot endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from karte_link.api.models import (
    ImportRequest,
    ImportResponse,
    RecordFamily,
    SnapshotStatusResponse,
)
from karte_link.api.services.snapshot_service import SnapshotService, get_snapshot_service
from karte_link.linkage.records import SnapshotFormatError
from karte_link.linkage.snapshot_store import StorageQuotaExceededError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["snapshot"])


@router.post("/imports/{family}", response_model=ImportResponse)
async def import_family(
    family: RecordFamily,
    request: ImportRequest,
    service: SnapshotService = Depends(get_snapshot_service),
):
    """Merge a batch of parsed rows into the stored snapshot."""
    try:
        summary = service.import_rows(family.value, request.records)
    except SnapshotFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageQuotaExceededError as e:
        logger.warning(f"POST /api/imports/{family.value} -> quota exceeded: {e}")
        raise HTTPException(status_code=507, detail=str(e))

    logger.info(f"POST /api/imports/{family.value} -> {summary['added']} added")
    return ImportResponse(**summary)


@router.get("/snapshot", response_model=SnapshotStatusResponse)
async def get_snapshot_status(service: SnapshotService = Depends(get_snapshot_service)):
    """Stored counts and timestamps for every family."""
    return SnapshotStatusResponse(**service.status())


@router.delete("/snapshot/{family}")
async def clear_family(
    family: RecordFamily,
    service: SnapshotService = Depends(get_snapshot_service),
):
    """Drop a family from the stored snapshot."""
    service.clear(family.value)
    return {"status": "cleared", "family": family.value}
