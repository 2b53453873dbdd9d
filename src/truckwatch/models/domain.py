"""Domain models for vehicles, delivery appointments and distance calculations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Any, Optional

METERS_PER_MILE = 1609.344
UNAVAILABLE_ADDRESS = "Location unavailable"


class VehicleStatus(str, Enum):
    MOVING = "moving"
    IDLE = "idle"
    STATIONARY = "stationary"
    STALE = "stale"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"


@dataclass(slots=True)
class Location:
    lat: float
    lon: float
    address: Optional[str] = None


@dataclass(slots=True)
class Vehicle:
    """A truck as last reported by the telemetry provider."""

    id: str
    truck_number: str
    location: Location
    speed: float
    last_update: datetime
    status: VehicleStatus
    location_source: str = ""


@dataclass(slots=True)
class Appointment:
    """A delivery appointment owned by a vehicle."""

    id: str
    location: str
    scheduled_at: datetime
    notes: str = ""
    status: AppointmentStatus = AppointmentStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "location": self.location,
            "scheduled_at": self.scheduled_at.isoformat(),
            "notes": self.notes,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_tz: tzinfo) -> "Appointment":
        scheduled_at = datetime.fromisoformat(data["scheduled_at"])
        if scheduled_at.tzinfo is None:
            scheduled_at = scheduled_at.replace(tzinfo=default_tz)
        return cls(
            id=str(data["id"]),
            location=data.get("location", ""),
            scheduled_at=scheduled_at,
            notes=data.get("notes") or "",
            status=AppointmentStatus(data.get("status", AppointmentStatus.PENDING.value)),
        )


def format_eta(moment: datetime, tz: tzinfo) -> str:
    """Format a moment as ``M/D, H:MM AM`` in the given timezone."""
    local = moment.astimezone(tz)
    clock = local.strftime("%I:%M %p").lstrip("0")
    return f"{local.month}/{local.day}, {clock}"


@dataclass(slots=True)
class DistanceResult:
    """Road distance from a vehicle to an appointment destination.

    A failed calculation keeps ``distance_m``/``duration_s`` as ``None`` and sets
    ``error``; it is never reported as a zero-length trip.
    """

    destination: str
    calculated_at: datetime
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None
    distance_miles: str = ""
    distance_km: str = ""
    duration_hours: int = 0
    duration_minutes: int = 0
    eta: str = "N/A"
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.duration_s is not None

    @property
    def duration_in_minutes(self) -> Optional[float]:
        if not self.ok:
            return None
        return self.duration_s / 60.0

    @classmethod
    def from_route(
        cls,
        meters: float,
        seconds: float,
        *,
        destination: str,
        calculated_at: datetime,
        tz: tzinfo,
    ) -> "DistanceResult":
        if not (math.isfinite(meters) and math.isfinite(seconds)) or meters < 0 or seconds < 0:
            raise ValueError(f"Route distance/duration must be finite and non-negative (got {meters}m, {seconds}s)")
        return cls(
            destination=destination,
            calculated_at=calculated_at,
            distance_m=meters,
            duration_s=seconds,
            distance_miles=f"{meters / METERS_PER_MILE:.1f}",
            distance_km=f"{meters / 1000:.1f}",
            duration_hours=int(seconds // 3600),
            duration_minutes=int((seconds % 3600) // 60),
            eta=format_eta(calculated_at + timedelta(seconds=seconds), tz),
        )

    @classmethod
    def failed(cls, *, destination: str, calculated_at: datetime, error: str) -> "DistanceResult":
        return cls(destination=destination, calculated_at=calculated_at, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "destination": self.destination,
            "calculated_at": self.calculated_at.isoformat(),
            "distance_m": self.distance_m,
            "duration_s": self.duration_s,
            "distance_miles": self.distance_miles,
            "distance_km": self.distance_km,
            "duration_hours": self.duration_hours,
            "duration_minutes": self.duration_minutes,
            "eta": self.eta,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DistanceResult":
        return cls(
            destination=data["destination"],
            calculated_at=datetime.fromisoformat(data["calculated_at"]),
            distance_m=data.get("distance_m"),
            duration_s=data.get("duration_s"),
            distance_miles=data.get("distance_miles", ""),
            distance_km=data.get("distance_km", ""),
            duration_hours=int(data.get("duration_hours", 0)),
            duration_minutes=int(data.get("duration_minutes", 0)),
            eta=data.get("eta", "N/A"),
            error=data.get("error"),
        )


@dataclass(slots=True)
class CacheEntry:
    """A successful distance result plus the vehicle position it was computed from."""

    vehicle_id: str
    result: DistanceResult
    lat: float
    lon: float
    cached_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "result": self.result.to_dict(),
            "vehicle_position": {"lat": self.lat, "lon": self.lon},
            "cached_at": self.cached_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        position = data.get("vehicle_position") or {}
        return cls(
            vehicle_id=str(data["vehicle_id"]),
            result=DistanceResult.from_dict(data["result"]),
            lat=float(position.get("lat", 0.0)),
            lon=float(position.get("lon", 0.0)),
            cached_at=datetime.fromisoformat(data["cached_at"]),
        )
