"""Coordinate extraction from telemetry records of inconsistent shape.

Providers disagree on where a position lives (``current_location``,
``last_known_location``, ``location`` or the record itself) and on what the axes
are called. Candidate locations and axis aliases are kept as data so a new
provider quirk is a one-line addition.

Exact ``0`` on either axis is treated as *missing*: serializers commonly emit 0
for an absent field. The price is that a truck sitting exactly on the equator or
the prime meridian is reported as having no position.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

LATITUDE_KEYS: tuple[str, ...] = ("lat", "latitude")
LONGITUDE_KEYS: tuple[str, ...] = ("lon", "lng", "longitude")
NESTED_COORDINATES_KEY = "coordinates"
DIRECT_SOURCE = "direct_properties"


def _mapping_at(key: str) -> Callable[[Mapping[str, Any]], Optional[Mapping[str, Any]]]:
    def getter(record: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        value = record.get(key)
        return value if isinstance(value, Mapping) else None

    return getter


# Ordered by preference; the first candidate carrying any axis-like field wins.
LOCATION_CANDIDATES: tuple[tuple[str, Callable[[Mapping[str, Any]], Optional[Mapping[str, Any]]]], ...] = (
    ("current_location", _mapping_at("current_location")),
    ("last_known_location", _mapping_at("last_known_location")),
    ("location", _mapping_at("location")),
    (DIRECT_SOURCE, lambda record: record),
)


class CoordinateIssue:
    NO_LOCATION = "no_location"
    MISSING_LATITUDE = "missing_latitude"
    MISSING_LONGITUDE = "missing_longitude"
    LATITUDE_OUT_OF_RANGE = "latitude_out_of_range"
    LONGITUDE_OUT_OF_RANGE = "longitude_out_of_range"

    DESCRIPTIONS = {
        NO_LOCATION: "No location data",
        MISSING_LATITUDE: "Has longitude but missing latitude",
        MISSING_LONGITUDE: "Has latitude but missing longitude",
        LATITUDE_OUT_OF_RANGE: "Latitude out of range",
        LONGITUDE_OUT_OF_RANGE: "Longitude out of range",
    }


@dataclass(slots=True)
class ExtractionResult:
    lat: float
    lon: float
    source: Optional[str]
    lat_path: Optional[str]
    lon_path: Optional[str]
    location: Optional[Mapping[str, Any]] = None

    @property
    def is_valid(self) -> bool:
        return is_valid_coordinate(self.lat, self.lon)

    @property
    def issue(self) -> Optional[str]:
        return diagnose_coordinates(self.lat, self.lon)

    @property
    def source_path(self) -> str:
        paths = [path for path in (self.lat_path, self.lon_path) if path]
        return ", ".join(paths) if paths else "unknown"


def parse_coordinate(value: Any) -> float:
    """Coerce a raw axis value to float; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def is_valid_coordinate(lat: float, lon: float) -> bool:
    return lat != 0 and lon != 0 and -90 <= lat <= 90 and -180 <= lon <= 180


def diagnose_coordinates(lat: float, lon: float) -> Optional[str]:
    """Return a CoordinateIssue code, or None when the pair is valid."""
    if lat == 0 and lon == 0:
        return CoordinateIssue.NO_LOCATION
    if lat == 0:
        return CoordinateIssue.MISSING_LATITUDE
    if lon == 0:
        return CoordinateIssue.MISSING_LONGITUDE
    if not -90 <= lat <= 90:
        return CoordinateIssue.LATITUDE_OUT_OF_RANGE
    if not -180 <= lon <= 180:
        return CoordinateIssue.LONGITUDE_OUT_OF_RANGE
    return None


def _has_axis_field(candidate: Mapping[str, Any]) -> bool:
    return any(candidate.get(key) is not None for key in LATITUDE_KEYS + LONGITUDE_KEYS)


def _resolve_axis(
    container: Mapping[str, Any], keys: tuple[str, ...], prefix: str
) -> tuple[float, Optional[str]]:
    for key in keys:
        value = parse_coordinate(container.get(key))
        if value != 0:
            return value, f"{prefix}{key}"
    return 0.0, None


def select_location(record: Mapping[str, Any]) -> tuple[Optional[str], Optional[Mapping[str, Any]]]:
    for name, getter in LOCATION_CANDIDATES:
        candidate = getter(record)
        if candidate is not None and _has_axis_field(candidate):
            return name, candidate
    return None, None


def extract_coordinates(record: Mapping[str, Any]) -> ExtractionResult:
    """Extract ``(lat, lon)`` from a raw vehicle record. Never raises."""
    if not isinstance(record, Mapping):
        return ExtractionResult(0.0, 0.0, None, None, None)

    source, candidate = select_location(record)
    if candidate is None:
        return ExtractionResult(0.0, 0.0, None, None, None)

    prefix = "" if source == DIRECT_SOURCE else f"{source}."
    lat, lat_path = _resolve_axis(candidate, LATITUDE_KEYS, prefix)
    lon, lon_path = _resolve_axis(candidate, LONGITUDE_KEYS, prefix)

    nested = candidate.get(NESTED_COORDINATES_KEY)
    if (lat == 0 or lon == 0) and isinstance(nested, Mapping):
        nested_prefix = f"{prefix}{NESTED_COORDINATES_KEY}."
        if lat == 0:
            lat, lat_path = _resolve_axis(nested, LATITUDE_KEYS, nested_prefix)
        if lon == 0:
            lon, lon_path = _resolve_axis(nested, LONGITUDE_KEYS, nested_prefix)

    return ExtractionResult(lat, lon, source, lat_path, lon_path, location=candidate)
