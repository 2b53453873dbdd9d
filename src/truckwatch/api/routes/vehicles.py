"""Vehicle, distance and delivery risk endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import TrackingError
from ...schemas.distances import DistanceModel
from ...schemas.risk import RiskAnalysisModel
from ...schemas.vehicles import (
    FilterCategoriesResponse,
    LocationStatsModel,
    VehicleListResponse,
    VehicleModel,
)
from ...services.tracking import TrackingService
from ..deps import get_tracking_service, to_http_error

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


def _vehicle_list(service: TrackingService) -> VehicleListResponse:
    vehicles = service.vehicles()
    stats = service.location_report()
    return VehicleListResponse(
        vehicles=[VehicleModel.from_vehicle(vehicle) for vehicle in vehicles],
        count=len(vehicles),
        strategy=service.last_fetch_strategy,
        fetched_at=service.last_fetched_at,
        location_stats=LocationStatsModel(**stats.to_dict()) if stats else None,
    )


@router.get("", response_model=VehicleListResponse, status_code=status.HTTP_200_OK)
def list_vehicles(service: TrackingService = Depends(get_tracking_service)) -> VehicleListResponse:
    return _vehicle_list(service)


@router.post("/refresh", response_model=VehicleListResponse, status_code=status.HTTP_200_OK)
def refresh_vehicles(service: TrackingService = Depends(get_tracking_service)) -> VehicleListResponse:
    """Fetch fresh vehicle locations from the telemetry provider."""
    try:
        service.fetch_vehicles()
    except TrackingError as exc:
        raise to_http_error(exc) from exc
    return _vehicle_list(service)


@router.get("/categories", response_model=FilterCategoriesResponse, status_code=status.HTTP_200_OK)
def vehicle_categories(service: TrackingService = Depends(get_tracking_service)) -> FilterCategoriesResponse:
    categories = service.filter_categories()
    return FilterCategoriesResponse(
        all=[vehicle.id for vehicle in categories.all],
        late=[vehicle.id for vehicle in categories.late],
        at_risk=[vehicle.id for vehicle in categories.at_risk],
        on_time=[vehicle.id for vehicle in categories.on_time],
        no_appointments=[vehicle.id for vehicle in categories.no_appointments],
    )


@router.get("/{vehicle_id}/distance", response_model=DistanceModel, status_code=status.HTTP_200_OK)
def vehicle_distance(vehicle_id: str, service: TrackingService = Depends(get_tracking_service)) -> DistanceModel:
    result = service.get_distance(vehicle_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No distance calculated for vehicle {vehicle_id}",
        )
    return DistanceModel.from_result(vehicle_id, result)


@router.get("/{vehicle_id}/risk", response_model=RiskAnalysisModel, status_code=status.HTTP_200_OK)
def vehicle_risk(vehicle_id: str, service: TrackingService = Depends(get_tracking_service)) -> RiskAnalysisModel:
    try:
        analysis = service.analyze_status(vehicle_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Vehicle {vehicle_id} not found") from exc
    return RiskAnalysisModel(vehicle_id=vehicle_id, **analysis.to_dict())
