"""Distance calculation endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, status

from ...schemas.distances import BatchSummaryModel, CalculateResponse, CalculationInfoModel
from ...services.tracking import TrackingService
from ..deps import get_tracking_service

router = APIRouter(prefix="/distances", tags=["distances"])


@router.post("/calculate", response_model=CalculateResponse, status_code=status.HTTP_200_OK)
def calculate_distances(service: TrackingService = Depends(get_tracking_service)) -> CalculateResponse:
    """Run a distance batch now; a no-op when one is already running."""
    summary = service.calculate_all()
    if summary is None:
        return CalculateResponse(started=False, message="Distance calculation already in progress")
    return CalculateResponse(
        started=True,
        message=f"Calculated distances for {summary.calculated} vehicles",
        summary=BatchSummaryModel(**asdict(summary)),
    )


@router.get("/status", response_model=CalculationInfoModel, status_code=status.HTTP_200_OK)
def calculation_status(service: TrackingService = Depends(get_tracking_service)) -> CalculationInfoModel:
    return CalculationInfoModel(**asdict(service.get_calculation_info()))


@router.post("/stats/reset", status_code=status.HTTP_200_OK)
def reset_usage_stats(service: TrackingService = Depends(get_tracking_service)) -> dict:
    """Zero the API usage counters, e.g. at the start of a billing month."""
    service.reset_stats()
    return {"success": True, "message": "Distance calculation stats reset"}


@router.delete("/cache", status_code=status.HTTP_200_OK)
def clear_distance_cache(service: TrackingService = Depends(get_tracking_service)) -> dict:
    service.clear_distance_cache()
    return {"success": True, "message": "Distance cache cleared"}
