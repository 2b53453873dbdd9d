"""Batch distance calculation on a timer and on demand.

At most one batch runs at a time no matter whether the timer or a manual trigger
fired it; a call that arrives while a batch is in flight returns immediately.
Items inside a batch are processed one after another with a fixed pause before
each provider-bound item, keeping routing calls below provider concurrency limits.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Sequence

from ...config import settings
from ...models.domain import Appointment, DistanceResult, Vehicle
from ..risk.analyzer import next_appointment
from ..telemetry.extractor import is_valid_coordinate
from .distance_cache import DistanceCache
from .usage import UsageTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchSummary:
    vehicles_considered: int
    calculated: int
    cache_hits: int
    cache_misses: int
    api_calls: int
    failures: int


@dataclass(slots=True)
class CalculationInfo:
    last_run_ago: str
    next_run_in: str
    api_calls_used: int
    cache_hit_rate: str
    usage_warning: Optional[str]
    is_calculating: bool
    total_calculations: int


class CalculationScheduler:
    def __init__(
        self,
        cache: DistanceCache,
        usage: UsageTracker,
        vehicle_source: Callable[[], Sequence[Vehicle]],
        appointment_source: Callable[[str], Iterable[Appointment]],
        *,
        interval: timedelta | None = None,
        item_delay: float | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cache = cache
        self.usage = usage
        self._vehicle_source = vehicle_source
        self._appointment_source = appointment_source
        self.interval = interval or timedelta(minutes=settings.calculation_interval_minutes)
        self.item_delay = item_delay if item_delay is not None else settings.calculation_item_delay_seconds
        self._clock = clock
        self._sleep = sleep

        self._flight = threading.Lock()
        self._results_lock = threading.Lock()
        self._results: dict[str, DistanceResult] = cache.latest_results()

        self._stop_event = threading.Event()
        self._timer_thread: threading.Thread | None = None

    def is_calculating(self) -> bool:
        return self._flight.locked()

    def get_distance(self, vehicle_id: str) -> Optional[DistanceResult]:
        with self._results_lock:
            return self._results.get(vehicle_id)

    def distances(self) -> dict[str, DistanceResult]:
        with self._results_lock:
            return dict(self._results)

    def _work_items(self) -> tuple[int, list[tuple[Vehicle, str]]]:
        vehicles = list(self._vehicle_source())
        items: list[tuple[Vehicle, str]] = []
        for vehicle in vehicles:
            appointment = next_appointment(self._appointment_source(vehicle.id))
            if appointment is None:
                continue
            if not is_valid_coordinate(vehicle.location.lat, vehicle.location.lon):
                logger.debug(f"Skipping vehicle {vehicle.truck_number}: no valid position")
                continue
            items.append((vehicle, appointment.location))
        return len(vehicles), items

    def calculate_all(self) -> Optional[BatchSummary]:
        """Recompute distances for every vehicle with a pending appointment.

        Returns ``None`` without doing anything when a batch is already running.
        """
        if not self._flight.acquire(blocking=False):
            logger.info("Distance calculation already in progress, skipping")
            return None
        try:
            return self._run_batch()
        finally:
            self._flight.release()

    def _run_batch(self) -> BatchSummary:
        considered, items = self._work_items()
        logger.info(f"Starting distance calculations for {len(items)} of {considered} vehicles")

        calls_before = self.cache.route_provider.calls_made
        new_results: dict[str, DistanceResult] = {}
        cache_hits = cache_misses = failures = 0
        provider_bound_items = 0

        for vehicle, destination in items:
            lat, lon = vehicle.location.lat, vehicle.location.lon
            cached = self.cache.lookup(vehicle.id, destination, lat, lon)
            if cached is not None:
                new_results[vehicle.id] = cached.result
                cache_hits += 1
                continue

            if provider_bound_items and self.item_delay:
                self._sleep(self.item_delay)
            provider_bound_items += 1

            result, from_cache = self.cache.get_or_compute(vehicle.id, destination, lat, lon)
            new_results[vehicle.id] = result
            if from_cache:
                cache_hits += 1
            else:
                cache_misses += 1
            if not result.ok:
                failures += 1

        with self._results_lock:
            self._results = new_results

        summary = BatchSummary(
            vehicles_considered=considered,
            calculated=len(items),
            cache_hits=cache_hits,
            cache_misses=cache_misses,
            api_calls=self.cache.route_provider.calls_made - calls_before,
            failures=failures,
        )
        self.usage.record_batch(
            api_calls=summary.api_calls,
            cache_hits=cache_hits,
            cache_misses=cache_misses,
            finished_at=self._clock(),
        )
        logger.info(
            f"Distance calculations complete: {summary.calculated} vehicles, {summary.api_calls} API calls, "
            f"{cache_hits} cache hits, {failures} failures"
        )
        return summary

    def run_if_due(self) -> Optional[BatchSummary]:
        """Run a batch now if none has run within the interval, e.g. after a long restart."""
        if not self.usage.should_auto_calculate(self._clock(), self.interval):
            return None
        logger.info("Distance calculation overdue, running now")
        return self.calculate_all()

    def get_calculation_info(self) -> CalculationInfo:
        now = self._clock()
        return CalculationInfo(
            last_run_ago=self.usage.time_since_last(now),
            next_run_in=self.usage.time_until_next(now, self.interval),
            api_calls_used=self.usage.stats.api_calls_used,
            cache_hit_rate=self.usage.cache_hit_rate(),
            usage_warning=self.usage.usage_warning(),
            is_calculating=self.is_calculating(),
            total_calculations=self.usage.stats.total_calculations,
        )

    def start(self) -> None:
        """Start the recurring timer. Safe to call more than once."""
        if self._timer_thread is not None and self._timer_thread.is_alive():
            return
        self._stop_event.clear()
        self._timer_thread = threading.Thread(target=self._timer_loop, name="distance-scheduler", daemon=True)
        self._timer_thread.start()
        logger.info(f"Auto distance calculation started (every {self.interval})")

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout)
            self._timer_thread = None
            logger.info("Auto distance calculation stopped")

    def _timer_loop(self) -> None:
        while not self._stop_event.wait(self.interval.total_seconds()):
            logger.info("Auto-calculating distances")
            try:
                self.calculate_all()
            except Exception:
                logger.exception("Scheduled distance calculation failed")
