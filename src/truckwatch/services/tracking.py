"""Tracking facade consumed by the HTTP layer.

Wires the telemetry fetch, appointment storage, distance scheduler and risk
analysis together. Every collaborator is passed in explicitly; ``build_tracking_service``
assembles the production set from settings.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from ..config import Settings, settings as default_settings
from ..data.appointments_repository import AppointmentRepository
from ..errors import ConfigurationError, TrackingError
from ..models.domain import DistanceResult, Vehicle
from ..persistence.filesystem import FileStorage
from .risk.analyzer import FilterCategories, RiskAnalysis, analyze, get_filter_categories
from .routing.distance_cache import DistanceCache, RouteProvider
from .routing.mapbox_client import MapboxClient
from .routing.scheduler import BatchSummary, CalculationInfo, CalculationScheduler
from .routing.usage import UsageTracker
from .telemetry.client import TelemetryClient
from .telemetry.normalizer import LocationStats
from .telemetry.orchestrator import FetchOrchestrator

logger = logging.getLogger(__name__)


class TrackingService:
    def __init__(
        self,
        *,
        orchestrator: Optional[FetchOrchestrator],
        appointments: AppointmentRepository,
        scheduler: CalculationScheduler,
        tz: ZoneInfo,
        buffer_minutes: float,
        high_severity_shortfall: float,
        auto_calculate: bool = True,
        refresh_interval: Optional[timedelta] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.orchestrator = orchestrator
        self.appointments = appointments
        self.scheduler = scheduler
        self.tz = tz
        self.buffer_minutes = buffer_minutes
        self.high_severity_shortfall = high_severity_shortfall
        self.auto_calculate = auto_calculate
        self.refresh_interval = refresh_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._vehicles: list[Vehicle] = []
        self.last_fetch_strategy: Optional[str] = None
        self.last_location_stats: Optional[LocationStats] = None
        self.last_fetched_at: Optional[datetime] = None
        self._stop_event = threading.Event()
        self._refresh_thread: threading.Thread | None = None

    def vehicles(self) -> list[Vehicle]:
        with self._lock:
            return list(self._vehicles)

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        with self._lock:
            return next((vehicle for vehicle in self._vehicles if vehicle.id == vehicle_id), None)

    def fetch_vehicles(self) -> list[Vehicle]:
        """Fetch fresh telemetry and replace the vehicle list wholesale."""
        if self.orchestrator is None:
            raise ConfigurationError("Telemetry provider is not configured. Set TRUCKWATCH_MOTIVE_API_KEY.")
        result = self.orchestrator.fetch()
        with self._lock:
            self._vehicles = list(result.vehicles)
            self.last_fetch_strategy = result.strategy
            self.last_location_stats = result.stats
            self.last_fetched_at = self._clock()
        return list(result.vehicles)

    def refresh_vehicles(self) -> bool:
        """Fetch telemetry, keeping the previous vehicle list when the fetch fails."""
        try:
            vehicles = self.fetch_vehicles()
        except TrackingError as exc:
            logger.error(f"Vehicle refresh failed, keeping {len(self.vehicles())} previous vehicles: {exc}")
            return False
        logger.info(f"Refreshed {len(vehicles)} vehicles via {self.last_fetch_strategy}")
        return True

    def get_distance(self, vehicle_id: str) -> Optional[DistanceResult]:
        return self.scheduler.get_distance(vehicle_id)

    def is_calculating(self) -> bool:
        return self.scheduler.is_calculating()

    def calculate_all(self) -> Optional[BatchSummary]:
        return self.scheduler.calculate_all()

    def get_calculation_info(self) -> CalculationInfo:
        return self.scheduler.get_calculation_info()

    def analyze_status(self, vehicle_id: str) -> RiskAnalysis:
        vehicle = self.get_vehicle(vehicle_id)
        if vehicle is None:
            raise KeyError(vehicle_id)
        return analyze(
            vehicle,
            self.appointments.get_appointments(vehicle_id),
            self.get_distance(vehicle_id),
            now=self._clock(),
            tz=self.tz,
            buffer_minutes=self.buffer_minutes,
            high_severity_shortfall=self.high_severity_shortfall,
        )

    def filter_categories(self) -> FilterCategories:
        return get_filter_categories(
            self.vehicles(),
            self.appointments.all_appointments(),
            self.scheduler.distances(),
            now=self._clock(),
            tz=self.tz,
            buffer_minutes=self.buffer_minutes,
            high_severity_shortfall=self.high_severity_shortfall,
        )

    def location_report(self) -> Optional[LocationStats]:
        return self.last_location_stats

    def reset_stats(self) -> None:
        self.scheduler.usage.reset()

    def clear_distance_cache(self) -> None:
        """Drop persisted distances and the route client's in-memory lookups."""
        self.scheduler.cache.clear()
        clear_provider_cache = getattr(self.scheduler.cache.route_provider, "clear_cache", None)
        if clear_provider_cache is not None:
            clear_provider_cache()

    def test_telemetry_connection(self) -> bool:
        if self.orchestrator is None:
            raise ConfigurationError("Telemetry provider is not configured. Set TRUCKWATCH_MOTIVE_API_KEY.")
        return self.orchestrator.client.test_connection()

    def test_mapping_connection(self) -> bool:
        provider = self.scheduler.cache.route_provider
        if not isinstance(provider, MapboxClient):
            raise ConfigurationError("Mapbox access token is not configured. Set TRUCKWATCH_MAPBOX_ACCESS_TOKEN.")
        return provider.test_connection()

    def start(self) -> None:
        if self.orchestrator is not None and self.refresh_interval:
            self._start_refresh()
        if self.auto_calculate:
            self.scheduler.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._refresh_thread is not None:
            self._refresh_thread.join(timeout)
            self._refresh_thread = None
            logger.info("Vehicle refresh stopped")
        self.scheduler.stop(timeout)

    def _start_refresh(self) -> None:
        if self._refresh_thread is not None and self._refresh_thread.is_alive():
            return
        self._stop_event.clear()
        self._refresh_thread = threading.Thread(target=self._refresh_loop, name="vehicle-refresh", daemon=True)
        self._refresh_thread.start()
        logger.info(f"Vehicle refresh started (every {self.refresh_interval})")

    def _refresh_loop(self) -> None:
        caught_up = False
        while not self._stop_event.is_set():
            try:
                # First good fetch after start-up also runs an overdue distance batch
                if self.refresh_vehicles() and self.auto_calculate and not caught_up:
                    caught_up = True
                    self.scheduler.run_if_due()
            except Exception:
                logger.exception("Scheduled vehicle refresh failed")
            if self._stop_event.wait(self.refresh_interval.total_seconds()):
                break


class _UnconfiguredRouteProvider:
    """Stands in when no Mapbox token is set; every lookup fails with a clear message."""

    calls_made = 0

    def geocode(self, address: str):
        raise ConfigurationError("Mapbox access token is not configured.", provider="Mapbox")

    def route_distance(self, from_lat: float, from_lng: float, to_lat: float, to_lng: float):
        raise ConfigurationError("Mapbox access token is not configured.", provider="Mapbox")


def build_tracking_service(config: Settings | None = None, data_root: Path | None = None) -> TrackingService:
    config = config or default_settings
    tz = ZoneInfo(config.reference_timezone)
    storage = FileStorage(root=data_root or config.data_root)

    orchestrator: Optional[FetchOrchestrator] = None
    if config.motive_api_key:
        client = TelemetryClient(
            api_key=config.motive_api_key,
            base_url=config.motive_base_url,
            timeout=config.motive_timeout_seconds,
            min_request_interval=config.motive_min_request_interval_seconds,
        )
        orchestrator = FetchOrchestrator(
            client,
            config.motive_fleet_id,
            page_size=config.motive_page_size,
            max_pages=config.motive_max_pages,
            max_empty_pages=config.motive_max_empty_pages,
            max_individual_vehicles=config.motive_max_individual_vehicles,
            individual_delay=config.motive_individual_delay_seconds,
            stale_after=timedelta(minutes=config.stale_after_minutes),
        )
    else:
        logger.warning("Motive API key not configured; vehicle fetches will fail")

    route_provider: RouteProvider
    if config.mapbox_access_token:
        route_provider = MapboxClient(
            access_token=config.mapbox_access_token,
            base_url=config.mapbox_base_url,
            timeout=config.mapbox_timeout_seconds,
        )
    else:
        logger.warning("Mapbox access token not configured; distance calculations will fail")
        route_provider = _UnconfiguredRouteProvider()

    cache = DistanceCache(
        route_provider,
        storage,
        max_age=timedelta(minutes=config.distance_cache_max_age_minutes),
        drift_threshold=config.distance_cache_drift_degrees,
        tz=tz,
    )
    usage = UsageTracker(
        storage,
        monthly_limit=config.mapbox_monthly_limit,
        warning_ratio=config.usage_warning_ratio,
    )
    appointments = AppointmentRepository(storage, tz=tz)

    service: TrackingService
    scheduler = CalculationScheduler(
        cache,
        usage,
        vehicle_source=lambda: service.vehicles(),
        appointment_source=appointments.get_appointments,
        interval=timedelta(minutes=config.calculation_interval_minutes),
        item_delay=config.calculation_item_delay_seconds,
    )
    service = TrackingService(
        orchestrator=orchestrator,
        appointments=appointments,
        scheduler=scheduler,
        tz=tz,
        buffer_minutes=config.delivery_buffer_minutes,
        high_severity_shortfall=config.at_risk_high_threshold_minutes,
        auto_calculate=config.auto_calculate,
        refresh_interval=timedelta(minutes=config.vehicle_refresh_minutes) if config.vehicle_refresh_minutes else None,
    )
    return service
