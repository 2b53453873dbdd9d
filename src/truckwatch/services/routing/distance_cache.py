"""Persistent cache of vehicle-to-destination road distances.

Entries are keyed by vehicle, destination text and the vehicle position rounded to
three decimals (~111 m), which absorbs GPS jitter. An entry is reused only while it
is younger than ``max_age`` and the vehicle has drifted less than
``drift_threshold`` degrees on both axes since it was computed. Failed
calculations are returned to the caller but never stored.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol
from zoneinfo import ZoneInfo

from ...config import settings
from ...errors import TrackingError
from ...models.domain import CacheEntry, DistanceResult
from ...persistence.filesystem import DocumentStore
from .mapbox_client import GeocodeResult, RouteLeg

STORAGE_KEY = "distance_cache"
POSITION_DECIMALS = 3

logger = logging.getLogger(__name__)


class RouteProvider(Protocol):
    calls_made: int

    def geocode(self, address: str) -> GeocodeResult: ...

    def route_distance(self, from_lat: float, from_lng: float, to_lat: float, to_lng: float) -> RouteLeg: ...


ValidityPredicate = Callable[[CacheEntry, float, float, datetime], bool]


def cache_key(vehicle_id: str, destination: str, lat: float, lon: float) -> str:
    return f"{vehicle_id}_{destination}_{round(lat, POSITION_DECIMALS)}_{round(lon, POSITION_DECIMALS)}"


def make_validity_predicate(max_age: timedelta, drift_threshold: float) -> ValidityPredicate:
    def is_valid(entry: CacheEntry, lat: float, lon: float, now: datetime) -> bool:
        is_recent = now - entry.cached_at < max_age
        position_unchanged = abs(entry.lat - lat) < drift_threshold and abs(entry.lon - lon) < drift_threshold
        return is_recent and position_unchanged

    return is_valid


class DistanceCache:
    def __init__(
        self,
        route_provider: RouteProvider,
        store: DocumentStore,
        *,
        max_age: timedelta | None = None,
        drift_threshold: float | None = None,
        validity: ValidityPredicate | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        tz: ZoneInfo | None = None,
    ) -> None:
        self.route_provider = route_provider
        self.store = store
        self.max_age = max_age or timedelta(minutes=settings.distance_cache_max_age_minutes)
        self.drift_threshold = drift_threshold or settings.distance_cache_drift_degrees
        self.is_valid = validity or make_validity_predicate(self.max_age, self.drift_threshold)
        self.tz = tz or ZoneInfo(settings.reference_timezone)
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, CacheEntry] = self._load()

    def _load(self) -> dict[str, CacheEntry]:
        document = self.store.read_json(STORAGE_KEY) or {}
        entries: dict[str, CacheEntry] = {}
        for key, raw in document.items():
            try:
                entries[key] = CacheEntry.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Dropping unreadable distance cache entry '{key}': {exc}")
        logger.info(f"Loaded distance cache: {len(entries)} entries")
        return entries

    def _persist(self) -> None:
        self.store.write_json(STORAGE_KEY, {key: entry.to_dict() for key, entry in self._entries.items()})

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def lookup(self, vehicle_id: str, destination: str, lat: float, lon: float) -> Optional[CacheEntry]:
        """Return a still-valid entry for this vehicle and destination, if any.

        The exact rounded-position key is tried first. Drift below the threshold can
        still cross a rounding boundary, so other entries for the same vehicle and
        destination are then checked against the validity predicate.
        """
        now = self._clock()
        with self._lock:
            exact = self._entries.get(cache_key(vehicle_id, destination, lat, lon))
            if exact is not None and self.is_valid(exact, lat, lon, now):
                return exact
            candidates = [
                entry
                for entry in self._entries.values()
                if entry.vehicle_id == vehicle_id
                and entry.result.destination == destination
                and self.is_valid(entry, lat, lon, now)
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda entry: entry.cached_at)

    def get_or_compute(
        self, vehicle_id: str, destination: str, lat: float, lon: float
    ) -> tuple[DistanceResult, bool]:
        """Return ``(result, from_cache)``; on a miss, geocode and route, then store."""
        entry = self.lookup(vehicle_id, destination, lat, lon)
        if entry is not None:
            logger.debug(f"Using cached distance for vehicle {vehicle_id}")
            return entry.result, True

        logger.info(f"Calculating new distance for vehicle {vehicle_id} to '{destination}'")
        try:
            geocoded = self.route_provider.geocode(destination)
            leg = self.route_provider.route_distance(lat, lon, geocoded.lat, geocoded.lng)
            now = self._clock()
            result = DistanceResult.from_route(
                leg.meters,
                leg.seconds,
                destination=destination,
                calculated_at=now,
                tz=self.tz,
            )
        except (TrackingError, ValueError) as exc:
            logger.error(f"Distance calculation failed for vehicle {vehicle_id}: {exc}")
            return DistanceResult.failed(destination=destination, calculated_at=self._clock(), error=str(exc)), False

        self.store_result(vehicle_id, result, lat, lon)
        return result, False

    def store_result(self, vehicle_id: str, result: DistanceResult, lat: float, lon: float) -> None:
        if not result.ok:
            raise ValueError("Failed distance results are not cacheable")
        now = self._clock()
        with self._lock:
            self._entries[cache_key(vehicle_id, result.destination, lat, lon)] = CacheEntry(
                vehicle_id=vehicle_id, result=result, lat=lat, lon=lon, cached_at=now
            )
            self._prune(now)
            self._persist()

    def _prune(self, now: datetime) -> None:
        expired = [key for key, entry in self._entries.items() if now - entry.cached_at >= self.max_age]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Pruned {len(expired)} expired distance cache entries")

    def latest_results(self) -> dict[str, DistanceResult]:
        """Most recent cached result per vehicle, regardless of validity."""
        latest: dict[str, CacheEntry] = {}
        with self._lock:
            for entry in self._entries.values():
                current = latest.get(entry.vehicle_id)
                if current is None or entry.cached_at > current.cached_at:
                    latest[entry.vehicle_id] = entry
        return {vehicle_id: entry.result for vehicle_id, entry in latest.items()}

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.store.delete(STORAGE_KEY)
        logger.info("Distance cache cleared")
