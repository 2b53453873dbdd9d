"""Turn raw telemetry payloads into Vehicle entities."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence

from ...models.domain import UNAVAILABLE_ADDRESS, Location, Vehicle
from .extractor import CoordinateIssue, ExtractionResult, diagnose_coordinates, extract_coordinates, parse_coordinate
from .status import DEFAULT_STALE_AFTER, classify_status

logger = logging.getLogger(__name__)

RECORD_LIST_KEYS = ("vehicles", "vehicle_locations", "data")
ID_KEYS = ("id", "vehicle_id")
TRUCK_NUMBER_KEYS = ("name", "number", "vehicle_number", "license_plate")
LOCATION_TIMESTAMP_KEYS = ("located_at", "recorded_at", "timestamp")
RECORD_TIMESTAMP_KEYS = ("updated_at", "timestamp", "recorded_at")
ADDRESS_KEYS = ("address", "formatted_address")


def unwrap_records(payload: Any) -> list[Any]:
    """Return the list of vehicle records regardless of response envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in RECORD_LIST_KEYS:
            records = payload.get(key)
            if isinstance(records, list):
                return records
    logger.warning(f"Unknown telemetry response structure: {type(payload).__name__}")
    return []


def _first(container: Optional[Mapping[str, Any]], keys: Iterable[str]) -> Any:
    if not container:
        return None
    for key in keys:
        value = container.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_timestamp(value: Any, now: datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return now
    else:
        return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _address_for(extraction: ExtractionResult) -> str:
    address = _first(extraction.location, ADDRESS_KEYS)
    if address:
        return str(address)
    if extraction.lat != 0 or extraction.lon != 0:
        return f"{extraction.lat:.6f}, {extraction.lon:.6f}"
    return UNAVAILABLE_ADDRESS


def normalize_record(
    record: Mapping[str, Any],
    index: int,
    now: datetime,
    *,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> Vehicle:
    vehicle_data = record.get("vehicle") if isinstance(record.get("vehicle"), Mapping) else record

    extraction = extract_coordinates(vehicle_data)
    location = extraction.location

    vehicle_id = _first(vehicle_data, ID_KEYS)
    vehicle_id = str(vehicle_id) if vehicle_id is not None else f"vehicle_{index}"
    truck_number = _first(vehicle_data, TRUCK_NUMBER_KEYS) or f"Vehicle {vehicle_id}"

    raw_speed = _first(location, ("speed",))
    if raw_speed is None:
        raw_speed = vehicle_data.get("speed")
    speed = parse_coordinate(raw_speed)

    raw_timestamp = _first(location, LOCATION_TIMESTAMP_KEYS) or _first(vehicle_data, RECORD_TIMESTAMP_KEYS)
    last_update = parse_timestamp(raw_timestamp, now)

    status = classify_status(
        speed,
        last_update,
        now,
        provider_status=vehicle_data.get("status"),
        stale_after=stale_after,
    )

    return Vehicle(
        id=vehicle_id,
        truck_number=str(truck_number),
        location=Location(lat=extraction.lat, lon=extraction.lon, address=_address_for(extraction)),
        speed=speed,
        last_update=last_update,
        status=status,
        location_source=extraction.source_path,
    )


def normalize_response(
    payload: Any,
    endpoint: str = "unknown",
    *,
    now: Optional[datetime] = None,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> list[Vehicle]:
    now = now or datetime.now(timezone.utc)
    records = unwrap_records(payload)
    logger.info(f"Processing {len(records)} telemetry records from {endpoint}")

    vehicles: list[Vehicle] = []
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            logger.error(f"Skipping telemetry record {index} from {endpoint}: not an object")
            continue
        try:
            vehicles.append(normalize_record(record, index, now, stale_after=stale_after))
        except (TypeError, ValueError, AttributeError) as exc:
            logger.error(f"Skipping telemetry record {index} from {endpoint}: {exc}")
    return vehicles


@dataclass(slots=True)
class LocationStats:
    total: int = 0
    valid: int = 0
    missing_latitude: int = 0
    missing_longitude: int = 0
    no_location: int = 0
    out_of_range: int = 0
    with_address: int = 0

    @property
    def partial(self) -> int:
        return self.missing_latitude + self.missing_longitude

    def to_dict(self) -> dict[str, int]:
        data = asdict(self)
        data["partial"] = self.partial
        return data


def summarize_locations(vehicles: Sequence[Vehicle]) -> LocationStats:
    stats = LocationStats(total=len(vehicles))
    for vehicle in vehicles:
        issue = diagnose_coordinates(vehicle.location.lat, vehicle.location.lon)
        if issue is None:
            stats.valid += 1
        elif issue == CoordinateIssue.NO_LOCATION:
            stats.no_location += 1
        elif issue == CoordinateIssue.MISSING_LATITUDE:
            stats.missing_latitude += 1
        elif issue == CoordinateIssue.MISSING_LONGITUDE:
            stats.missing_longitude += 1
        else:
            stats.out_of_range += 1
        if vehicle.location.address and vehicle.location.address != UNAVAILABLE_ADDRESS:
            stats.with_address += 1
    return stats


def log_location_stats(stats: LocationStats, endpoint: str) -> None:
    logger.info(
        f"{endpoint}: {stats.total} vehicles, {stats.valid} with valid locations, "
        f"{stats.partial} with partial coordinates, {stats.no_location} without location"
    )
    if stats.missing_longitude:
        logger.warning(f"{stats.missing_longitude} vehicles have latitude but missing longitude")
    if stats.missing_latitude:
        logger.warning(f"{stats.missing_latitude} vehicles have longitude but missing latitude")
