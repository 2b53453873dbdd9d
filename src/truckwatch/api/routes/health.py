"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...errors import ConfigurationError
from ...services.tracking import TrackingService
from ..deps import get_tracking_service

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/telemetry", status_code=status.HTTP_200_OK)
def health_telemetry(service: TrackingService = Depends(get_tracking_service)) -> dict:
    """Check that the Motive API accepts our key."""
    try:
        return {"service": "motive", "configured": True, "healthy": service.test_telemetry_connection()}
    except ConfigurationError as exc:
        return {"service": "motive", "configured": False, "healthy": False, "error": str(exc)}


@router.get("/health/mapping", status_code=status.HTTP_200_OK)
def health_mapping(service: TrackingService = Depends(get_tracking_service)) -> dict:
    """Check that Mapbox geocoding answers with our token."""
    try:
        return {"service": "mapbox", "configured": True, "healthy": service.test_mapping_connection()}
    except ConfigurationError as exc:
        return {"service": "mapbox", "configured": False, "healthy": False, "error": str(exc)}
