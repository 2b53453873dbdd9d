"""Vehicle motion status derivation."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from ...models.domain import VehicleStatus

MOVING_SPEED_THRESHOLD = 5.0
DEFAULT_STALE_AFTER = timedelta(minutes=30)

PROVIDER_STATUS_MAP: dict[str, VehicleStatus] = {
    "moving": VehicleStatus.MOVING,
    "driving": VehicleStatus.MOVING,
    "online": VehicleStatus.MOVING,
    "idle": VehicleStatus.IDLE,
    "idling": VehicleStatus.IDLE,
    "stationary": VehicleStatus.STATIONARY,
    "parked": VehicleStatus.STATIONARY,
    "stopped": VehicleStatus.STATIONARY,
    "offline": VehicleStatus.STALE,
}


def classify_status(
    speed: float,
    last_update: datetime,
    now: datetime,
    *,
    provider_status: Optional[str] = None,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> VehicleStatus:
    """Map a provider status string, falling back to speed and telemetry age."""
    if isinstance(provider_status, str):
        mapped = PROVIDER_STATUS_MAP.get(provider_status.strip().lower())
        if mapped is not None:
            return mapped

    if now - last_update > stale_after:
        return VehicleStatus.STALE
    if speed > MOVING_SPEED_THRESHOLD:
        return VehicleStatus.MOVING
    if speed > 0:
        return VehicleStatus.IDLE
    return VehicleStatus.STATIONARY
