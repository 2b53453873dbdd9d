"""Vehicle API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from ..models.domain import Vehicle


class LocationModel(BaseModel):
    lat: float
    lon: float
    address: Optional[str] = None


class VehicleModel(BaseModel):
    id: str
    truck_number: str
    location: LocationModel
    speed: float
    last_update: datetime
    status: str
    location_source: str = ""

    @classmethod
    def from_vehicle(cls, vehicle: Vehicle) -> "VehicleModel":
        return cls(
            id=vehicle.id,
            truck_number=vehicle.truck_number,
            location=LocationModel(
                lat=vehicle.location.lat,
                lon=vehicle.location.lon,
                address=vehicle.location.address,
            ),
            speed=vehicle.speed,
            last_update=vehicle.last_update,
            status=vehicle.status.value,
            location_source=vehicle.location_source,
        )


class LocationStatsModel(BaseModel):
    total: int
    valid: int
    partial: int
    missing_latitude: int
    missing_longitude: int
    no_location: int
    out_of_range: int
    with_address: int


class VehicleListResponse(BaseModel):
    vehicles: List[VehicleModel]
    count: int
    strategy: Optional[str] = None
    fetched_at: Optional[datetime] = None
    location_stats: Optional[LocationStatsModel] = None


class FilterCategoriesResponse(BaseModel):
    """Vehicle ids per delivery-risk bucket."""

    all: List[str]
    late: List[str]
    at_risk: List[str]
    on_time: List[str]
    no_appointments: List[str]
