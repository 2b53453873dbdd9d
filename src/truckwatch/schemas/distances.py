"""Distance calculation schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..models.domain import DistanceResult


class DistanceModel(BaseModel):
    vehicle_id: str
    destination: str
    calculated_at: datetime
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None
    distance_miles: str = ""
    distance_km: str = ""
    duration_hours: int = 0
    duration_minutes: int = 0
    eta: str = "N/A"
    error: Optional[str] = Field(default=None, description="Set when the calculation failed; distance fields are then empty.")

    @classmethod
    def from_result(cls, vehicle_id: str, result: DistanceResult) -> "DistanceModel":
        return cls(vehicle_id=vehicle_id, **result.to_dict())


class BatchSummaryModel(BaseModel):
    vehicles_considered: int
    calculated: int
    cache_hits: int
    cache_misses: int
    api_calls: int
    failures: int


class CalculateResponse(BaseModel):
    started: bool
    message: str
    summary: Optional[BatchSummaryModel] = None


class CalculationInfoModel(BaseModel):
    last_run_ago: str
    next_run_in: str
    api_calls_used: int
    cache_hit_rate: str
    usage_warning: Optional[str] = None
    is_calculating: bool
    total_calculations: int
