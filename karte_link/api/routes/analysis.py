"""Analysis endpoints recomputed from the stored snapshot."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from karte_link.api.models import (
    LifestyleReportResponse,
    MatchingResponse,
    SlotInsightsResponse,
)
from karte_link.api.services.snapshot_service import SnapshotService, get_snapshot_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analysis", tags=["analysis"])

NO_CACHE_HEADERS = {"Cache-Control": "no-store, no-cache, must-revalidate, max-age=0"}

RANGE_PATTERN = r"^\d{4}-\d{2}(-\d{2})?$"


def _range_params(
    start: Optional[str] = Query(None, pattern=RANGE_PATTERN, description="YYYY-MM or YYYY-MM-DD"),
    end: Optional[str] = Query(None, pattern=RANGE_PATTERN, description="YYYY-MM or YYYY-MM-DD"),
):
    return start, end


@router.get("/lifestyle", response_model=LifestyleReportResponse)
async def get_lifestyle_report(
    period=Depends(_range_params),
    service: SnapshotService = Depends(get_snapshot_service),
):
    """Lifestyle-disease follow-up continuity for the selected period."""
    report = service.build_report(*period)
    response = LifestyleReportResponse(
        baseline_date=report.cohort.baseline_date,
        range_start=report.cohort.range_start,
        **report.distributions.to_dict(),
    )
    logger.info(f"GET /api/analysis/lifestyle -> {response.total_patients} patients")
    return JSONResponse(content=response.model_dump(), headers=NO_CACHE_HEADERS)


@router.get("/slots", response_model=SlotInsightsResponse)
async def get_slot_insights(
    period=Depends(_range_params),
    service: SnapshotService = Depends(get_snapshot_service),
):
    """Weekday/hour demand and revenue slots for matched visits."""
    report = service.build_report(*period)
    response = SlotInsightsResponse(**report.slots.to_dict())
    return JSONResponse(content=response.model_dump(), headers=NO_CACHE_HEADERS)


@router.get("/matching", response_model=MatchingResponse)
async def get_matching_summary(
    period=Depends(_range_params),
    service: SnapshotService = Depends(get_snapshot_service),
):
    """Visit/reservation matching counters."""
    report = service.build_report(*period)
    return MatchingResponse(**report.matching.to_dict())
