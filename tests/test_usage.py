from datetime import datetime, timedelta, timezone
from pathlib import Path

from truckwatch.persistence.filesystem import FileStorage
from truckwatch.services.routing.usage import UsageTracker, format_minutes

NOW = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)


def _tracker(tmp_path: Path, monthly_limit: int = 100) -> UsageTracker:
    return UsageTracker(FileStorage(root=tmp_path), monthly_limit=monthly_limit, warning_ratio=0.8)


def test_counters_accumulate_and_persist(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.record_batch(api_calls=6, cache_hits=1, cache_misses=3, finished_at=NOW)
    tracker.record_batch(api_calls=2, cache_hits=3, cache_misses=1, finished_at=NOW)

    reloaded = _tracker(tmp_path)

    assert reloaded.stats.total_calculations == 2
    assert reloaded.stats.api_calls_used == 8
    assert reloaded.cache_hit_rate() == "50%"
    assert reloaded.last_calculation_at == NOW


def test_hit_rate_without_data() -> None:
    class MemoryStore:
        def read_json(self, key):
            return None

        def write_json(self, key, data):
            pass

        def delete(self, key):
            pass

    assert UsageTracker(MemoryStore(), monthly_limit=10, warning_ratio=0.8).cache_hit_rate() == "0%"


def test_warning_only_above_threshold(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.record_batch(api_calls=80, cache_hits=0, cache_misses=40, finished_at=NOW)
    assert tracker.usage_warning() is None

    tracker.record_batch(api_calls=1, cache_hits=0, cache_misses=1, finished_at=NOW)
    assert tracker.is_approaching_limit()
    assert tracker.usage_warning() == "API usage at 81% of monthly limit (81/100)"


def test_reset_zeroes_counters_but_keeps_last_run(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.record_batch(api_calls=90, cache_hits=2, cache_misses=45, finished_at=NOW)

    tracker.reset()

    assert tracker.stats.api_calls_used == 0
    assert tracker.stats.total_calculations == 0
    assert tracker.usage_warning() is None
    assert _tracker(tmp_path).last_calculation_at == NOW


def test_relative_time_strings(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    interval = timedelta(minutes=30)

    assert tracker.time_since_last(NOW) == "Never"
    assert tracker.time_until_next(NOW, interval) == "Soon"
    assert tracker.should_auto_calculate(NOW, interval)

    tracker.record_batch(api_calls=0, cache_hits=0, cache_misses=0, finished_at=NOW)

    assert tracker.time_since_last(NOW + timedelta(seconds=20)) == "Just now"
    assert tracker.time_since_last(NOW + timedelta(minutes=12)) == "12m ago"
    assert tracker.time_since_last(NOW + timedelta(minutes=135)) == "2h 15m ago"
    assert tracker.time_until_next(NOW + timedelta(minutes=10), interval) == "20m"
    assert tracker.time_until_next(NOW + timedelta(minutes=45), interval) == "Now"
    assert not tracker.should_auto_calculate(NOW + timedelta(minutes=10), interval)
    assert tracker.should_auto_calculate(NOW + timedelta(minutes=30), interval)


def test_format_minutes() -> None:
    assert format_minutes(5) == "5m"
    assert format_minutes(60) == "1h 0m"
    assert format_minutes(125) == "2h 5m"
