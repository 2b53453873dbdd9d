"""Fetch orchestration across the telemetry provider's location endpoints.

Accounts differ in which endpoints are enabled and how populated they are, so the
orchestrator walks a fixed list of strategies and keeps the first result that
contains at least one vehicle with a usable position. Strategies run strictly one
after another; only the winning one should incur cost.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

from ...config import settings
from ...errors import AuthenticationError, ExhaustedError, RateLimitedError, TrackingError
from ...models.domain import Vehicle
from .client import TelemetryClient
from .normalizer import LocationStats, log_location_stats, normalize_response, summarize_locations, unwrap_records

logger = logging.getLogger(__name__)

# Abort the whole fetch; every strategy would fail the same way.
FATAL_ERRORS = (AuthenticationError, RateLimitedError)


@dataclass(slots=True)
class FetchStrategy:
    name: str
    run: Callable[[], list[Vehicle]]
    requires_fleet_id: bool = False


@dataclass(slots=True)
class FetchResult:
    vehicles: list[Vehicle]
    strategy: str
    stats: LocationStats
    failures: list[tuple[str, str]] = field(default_factory=list)


class FetchOrchestrator:
    def __init__(
        self,
        client: TelemetryClient,
        fleet_id: str | None = None,
        *,
        page_size: int | None = None,
        max_pages: int | None = None,
        max_empty_pages: int | None = None,
        max_individual_vehicles: int | None = None,
        individual_delay: float | None = None,
        stale_after: timedelta | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.fleet_id = fleet_id if fleet_id is not None else settings.motive_fleet_id
        self.page_size = page_size or settings.motive_page_size
        self.max_pages = max_pages or settings.motive_max_pages
        self.max_empty_pages = max_empty_pages or settings.motive_max_empty_pages
        self.max_individual_vehicles = max_individual_vehicles or settings.motive_max_individual_vehicles
        self.individual_delay = (
            individual_delay if individual_delay is not None else settings.motive_individual_delay_seconds
        )
        self.stale_after = stale_after or timedelta(minutes=settings.stale_after_minutes)
        self._clock = clock
        self._sleep = sleep

    def strategies(self) -> list[FetchStrategy]:
        candidates = [
            FetchStrategy("Paginated vehicle locations", self.fetch_paginated_locations),
            FetchStrategy("Fleet vehicle locations", self.fetch_fleet_locations, requires_fleet_id=True),
            FetchStrategy("Individual vehicle locations", self.fetch_individual_locations),
            FetchStrategy("Current locations", self.fetch_current_locations),
            FetchStrategy("Assets", self.fetch_assets),
        ]
        return [strategy for strategy in candidates if not strategy.requires_fleet_id or self.fleet_id]

    def fetch(self) -> FetchResult:
        """Run strategies in priority order and return the first acceptable result."""
        failures: list[tuple[str, str]] = []
        for strategy in self.strategies():
            logger.info(f"Attempting location fetch: {strategy.name}")
            try:
                vehicles = strategy.run()
            except FATAL_ERRORS:
                raise
            except TrackingError as exc:
                logger.warning(f"{strategy.name} failed: {exc}")
                failures.append((strategy.name, str(exc)))
                continue

            if not vehicles:
                logger.warning(f"{strategy.name} returned no vehicles")
                failures.append((strategy.name, "no vehicles returned"))
                continue

            stats = summarize_locations(vehicles)
            log_location_stats(stats, strategy.name)
            if stats.valid == 0:
                logger.warning(f"{strategy.name} returned vehicles but no valid locations, trying next method")
                failures.append((strategy.name, f"{stats.total} vehicles without valid locations"))
                continue

            logger.info(f"Location fetch succeeded with {strategy.name}: {len(vehicles)} vehicles")
            return FetchResult(vehicles=vehicles, strategy=strategy.name, stats=stats, failures=failures)

        raise ExhaustedError(
            "All location fetching methods failed. Check the API key and account permissions.",
            failures=failures,
        )

    def fetch_vehicles(self) -> list[Vehicle]:
        return self.fetch().vehicles

    def _normalize(self, payload: Any, endpoint: str) -> list[Vehicle]:
        return normalize_response(payload, endpoint, now=self._clock(), stale_after=self.stale_after)

    def fetch_paginated_locations(self) -> list[Vehicle]:
        records: list[Any] = []
        consecutive_empty = 0
        page = 1
        while consecutive_empty < self.max_empty_pages and page <= self.max_pages:
            try:
                payload = self.client.vehicle_locations_page(page=page, per_page=self.page_size)
            except FATAL_ERRORS:
                raise
            except TrackingError as exc:
                logger.warning(f"Error fetching page {page}, keeping {len(records)} records: {exc}")
                break

            page_records = unwrap_records(payload)
            if page_records:
                consecutive_empty = 0
                records.extend(page_records)
            else:
                consecutive_empty += 1
                logger.debug(f"Empty page {page}, consecutive empty: {consecutive_empty}")
            page += 1

        logger.info(f"Pagination complete: {len(records)} records over {page - 1} pages")
        return self._normalize({"vehicles": records}, "paginated vehicle_locations")

    def fetch_fleet_locations(self) -> list[Vehicle]:
        if not self.fleet_id:
            return []
        payload = self.client.fleet_vehicle_locations(self.fleet_id)
        return self._normalize(payload, "fleet vehicles_locations")

    def fetch_individual_locations(self) -> list[Vehicle]:
        listed = unwrap_records(self.client.list_vehicles())
        selected = listed[: self.max_individual_vehicles]
        logger.info(f"Fetching individual locations for {len(selected)} of {len(listed)} vehicles")

        enriched: list[Any] = []
        for index, record in enumerate(selected):
            if not isinstance(record, Mapping):
                continue
            vehicle = record.get("vehicle") if isinstance(record.get("vehicle"), Mapping) else record
            if index > 0 and self.individual_delay:
                self._sleep(self.individual_delay)
            location = self._latest_location(vehicle.get("id"))
            enriched.append({**vehicle, "current_location": location} if location else dict(vehicle))
        return self._normalize({"vehicles": enriched}, "individual vehicle locations")

    def _latest_location(self, vehicle_id: Any) -> Optional[Mapping[str, Any]]:
        if vehicle_id is None:
            return None
        try:
            payload = self.client.vehicle_locations(str(vehicle_id), limit=1)
        except FATAL_ERRORS:
            raise
        except TrackingError as exc:
            logger.warning(f"Failed to get location for vehicle {vehicle_id}: {exc}")
            return None
        if not isinstance(payload, Mapping):
            return None
        for key in ("vehicle_locations", "locations"):
            entries = payload.get(key)
            if isinstance(entries, list) and entries and isinstance(entries[0], Mapping):
                return entries[0]
        return None

    def fetch_current_locations(self) -> list[Vehicle]:
        return self._normalize(self.client.current_locations(), "current locations")

    def fetch_assets(self) -> list[Vehicle]:
        return self._normalize(self.client.assets(), "assets")
