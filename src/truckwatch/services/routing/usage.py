"""Cumulative mapping-provider usage accounting, persisted across restarts."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Optional

from ...config import settings
from ...persistence.filesystem import DocumentStore

STORAGE_KEY = "distance_calculation_stats"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UsageStats:
    total_calculations: int = 0
    api_calls_used: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    last_calculation_at: Optional[str] = None


def format_minutes(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


class UsageTracker:
    def __init__(
        self,
        store: DocumentStore,
        *,
        monthly_limit: int | None = None,
        warning_ratio: float | None = None,
    ) -> None:
        self.store = store
        self.monthly_limit = monthly_limit or settings.mapbox_monthly_limit
        self.warning_ratio = warning_ratio or settings.usage_warning_ratio
        self._lock = threading.Lock()
        self.stats = self._load()

    def _load(self) -> UsageStats:
        raw = self.store.read_json(STORAGE_KEY)
        if not isinstance(raw, dict):
            return UsageStats()
        try:
            return UsageStats(
                total_calculations=int(raw.get("total_calculations", 0)),
                api_calls_used=int(raw.get("api_calls_used", 0)),
                cache_hits=int(raw.get("cache_hits", 0)),
                cache_misses=int(raw.get("cache_misses", 0)),
                last_calculation_at=raw.get("last_calculation_at"),
            )
        except (TypeError, ValueError) as exc:
            logger.error(f"Error loading distance calculation stats, starting fresh: {exc}")
            return UsageStats()

    def _save(self) -> None:
        self.store.write_json(STORAGE_KEY, asdict(self.stats))

    @property
    def last_calculation_at(self) -> Optional[datetime]:
        if not self.stats.last_calculation_at:
            return None
        return datetime.fromisoformat(self.stats.last_calculation_at)

    def record_batch(self, *, api_calls: int, cache_hits: int, cache_misses: int, finished_at: datetime) -> None:
        with self._lock:
            self.stats.total_calculations += 1
            self.stats.api_calls_used += api_calls
            self.stats.cache_hits += cache_hits
            self.stats.cache_misses += cache_misses
            self.stats.last_calculation_at = finished_at.isoformat()
            self._save()
        logger.info(
            f"Distance calculation stats updated: {self.stats.total_calculations} batches, "
            f"{self.stats.api_calls_used} API calls, hit rate {self.cache_hit_rate()}"
        )

    def reset(self) -> None:
        """Zero the counters (new billing month); keeps the last calculation time."""
        with self._lock:
            self.stats = UsageStats(last_calculation_at=self.stats.last_calculation_at)
            self._save()
        logger.info("Distance calculation stats reset")

    def cache_hit_rate(self) -> str:
        total = self.stats.cache_hits + self.stats.cache_misses
        if total == 0:
            return "0%"
        return f"{round(self.stats.cache_hits / total * 100)}%"

    def is_approaching_limit(self) -> bool:
        return self.stats.api_calls_used > self.monthly_limit * self.warning_ratio

    def usage_warning(self) -> Optional[str]:
        if not self.is_approaching_limit():
            return None
        percentage = round(self.stats.api_calls_used / self.monthly_limit * 100)
        return f"API usage at {percentage}% of monthly limit ({self.stats.api_calls_used}/{self.monthly_limit})"

    def time_since_last(self, now: datetime) -> str:
        last = self.last_calculation_at
        if last is None:
            return "Never"
        minutes = int((now - last).total_seconds() // 60)
        if minutes < 1:
            return "Just now"
        return f"{format_minutes(minutes)} ago"

    def time_until_next(self, now: datetime, interval: timedelta) -> str:
        last = self.last_calculation_at
        if last is None:
            return "Soon"
        minutes = int(((last + interval) - now).total_seconds() // 60)
        if minutes <= 0:
            return "Now"
        return format_minutes(minutes)

    def should_auto_calculate(self, now: datetime, interval: timedelta) -> bool:
        last = self.last_calculation_at
        return last is None or now - last >= interval
