"""Delivery risk classification for a vehicle's next appointment.

The verdict compares the minutes left until the appointment with the travel time
plus a fixed buffer for loading, unloading and traffic slack. Both instants are
converted to one reference timezone before subtracting so a DST change between
now and the appointment cannot skew the result. Analyses are computed on demand
and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from ...models.domain import Appointment, AppointmentStatus, DistanceResult, Vehicle

DEFAULT_BUFFER_MINUTES = 30.0
DEFAULT_HIGH_SEVERITY_SHORTFALL = 60.0
DEFAULT_TIMEZONE = ZoneInfo("America/New_York")


class RiskStatus(str, Enum):
    LATE = "late"
    AT_RISK = "at_risk"
    ON_TIME = "on_time"
    NO_DATA = "no_data"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True, slots=True)
class RiskAnalysis:
    status: RiskStatus
    severity: Severity
    message: str
    minutes_late: Optional[float] = None
    minutes_short: Optional[float] = None
    minutes_ahead: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "severity": self.severity.value,
            "message": self.message,
            "minutes_late": self.minutes_late,
            "minutes_short": self.minutes_short,
            "minutes_ahead": self.minutes_ahead,
        }


NO_DATA = RiskAnalysis(RiskStatus.NO_DATA, Severity.LOW, "No appointment or distance data")


def next_appointment(appointments: Iterable[Appointment]) -> Optional[Appointment]:
    """Earliest pending appointment, or None."""
    pending = [appointment for appointment in appointments if appointment.status == AppointmentStatus.PENDING]
    if not pending:
        return None
    return min(pending, key=lambda appointment: appointment.scheduled_at)


def analyze(
    vehicle: Vehicle,
    appointments: Sequence[Appointment],
    distance: Optional[DistanceResult],
    *,
    now: Optional[datetime] = None,
    tz: tzinfo = DEFAULT_TIMEZONE,
    buffer_minutes: float = DEFAULT_BUFFER_MINUTES,
    high_severity_shortfall: float = DEFAULT_HIGH_SEVERITY_SHORTFALL,
) -> RiskAnalysis:
    appointment = next_appointment(appointments)
    if appointment is None or distance is None or not distance.ok:
        return NO_DATA
    # The route must lead to the appointment being judged
    if distance.destination != appointment.location:
        return NO_DATA

    now = (now or datetime.now(tz)).astimezone(tz)
    scheduled = appointment.scheduled_at
    if scheduled.tzinfo is None:
        scheduled = scheduled.replace(tzinfo=tz)
    scheduled = scheduled.astimezone(tz)

    time_until = (scheduled - now).total_seconds() / 60.0
    required = distance.duration_in_minutes + buffer_minutes

    if time_until < 0:
        return RiskAnalysis(
            RiskStatus.LATE,
            Severity.CRITICAL,
            "Already past appointment time",
            minutes_late=abs(time_until),
        )
    if required > time_until:
        shortfall = required - time_until
        return RiskAnalysis(
            RiskStatus.AT_RISK,
            Severity.HIGH if shortfall > high_severity_shortfall else Severity.MEDIUM,
            f"At risk of being {round(shortfall)} minutes late",
            minutes_short=shortfall,
        )
    cushion = time_until - required
    return RiskAnalysis(
        RiskStatus.ON_TIME,
        Severity.LOW,
        f"{round(cushion)} minutes ahead of schedule",
        minutes_ahead=cushion,
    )


@dataclass(slots=True)
class FilterCategories:
    all: list[Vehicle] = field(default_factory=list)
    late: list[Vehicle] = field(default_factory=list)
    at_risk: list[Vehicle] = field(default_factory=list)
    on_time: list[Vehicle] = field(default_factory=list)
    no_appointments: list[Vehicle] = field(default_factory=list)


def get_filter_categories(
    vehicles: Sequence[Vehicle],
    appointments: Mapping[str, Sequence[Appointment]],
    distances: Mapping[str, DistanceResult],
    *,
    now: Optional[datetime] = None,
    tz: tzinfo = DEFAULT_TIMEZONE,
    buffer_minutes: float = DEFAULT_BUFFER_MINUTES,
    high_severity_shortfall: float = DEFAULT_HIGH_SEVERITY_SHORTFALL,
) -> FilterCategories:
    """Partition vehicles by delivery risk, analysing each vehicle once.

    Vehicles without any appointment land in ``no_appointments`` whatever their
    distance data; vehicles whose analysis is ``no_data`` land there too.
    """
    now = now or datetime.now(tz)
    categories = FilterCategories()
    buckets = {
        RiskStatus.LATE: categories.late,
        RiskStatus.AT_RISK: categories.at_risk,
        RiskStatus.ON_TIME: categories.on_time,
    }
    for vehicle in vehicles:
        categories.all.append(vehicle)
        vehicle_appointments = appointments.get(vehicle.id) or []
        if not vehicle_appointments:
            categories.no_appointments.append(vehicle)
            continue
        analysis = analyze(
            vehicle,
            vehicle_appointments,
            distances.get(vehicle.id),
            now=now,
            tz=tz,
            buffer_minutes=buffer_minutes,
            high_severity_shortfall=high_severity_shortfall,
        )
        buckets.get(analysis.status, categories.no_appointments).append(vehicle)
    return categories
