from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from truckwatch.errors import NotFoundError
from truckwatch.models.domain import DistanceResult
from truckwatch.persistence.filesystem import FileStorage
from truckwatch.services.routing.distance_cache import DistanceCache, cache_key
from truckwatch.services.routing.mapbox_client import GeocodeResult, RouteLeg

START = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)
EASTERN = ZoneInfo("America/New_York")


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class DummyRouter:
    def __init__(self, meters: float = 32186.88, seconds: float = 2700.0, fail_with: Exception | None = None) -> None:
        self.meters = meters
        self.seconds = seconds
        self.fail_with = fail_with
        self.calls_made = 0

    def geocode(self, address: str) -> GeocodeResult:
        self.calls_made += 1
        if self.fail_with is not None:
            raise self.fail_with
        return GeocodeResult(lat=40.75, lng=-73.99, formatted_address=address)

    def route_distance(self, from_lat: float, from_lng: float, to_lat: float, to_lng: float) -> RouteLeg:
        self.calls_made += 1
        return RouteLeg(meters=self.meters, seconds=self.seconds)


def _cache(tmp_path: Path, router: DummyRouter, clock: FakeClock) -> DistanceCache:
    return DistanceCache(
        router,
        FileStorage(root=tmp_path),
        max_age=timedelta(hours=2),
        drift_threshold=0.001,
        clock=clock,
        tz=EASTERN,
    )


def test_miss_geocodes_routes_and_formats(tmp_path: Path) -> None:
    router = DummyRouter()
    cache = _cache(tmp_path, router, FakeClock())

    result, from_cache = cache.get_or_compute("v1", "Times Square, NY", 40.5, -74.2)

    assert from_cache is False
    assert router.calls_made == 2
    assert result.ok
    assert result.distance_miles == "20.0"
    assert result.distance_km == "32.2"
    assert (result.duration_hours, result.duration_minutes) == (0, 45)
    assert result.eta == "3/1, 10:45 AM"
    assert len(cache) == 1


def test_small_drift_reuses_entry(tmp_path: Path) -> None:
    router = DummyRouter()
    cache = _cache(tmp_path, router, FakeClock())
    cache.get_or_compute("v1", "Depot", 40.5, -74.2)

    result, from_cache = cache.get_or_compute("v1", "Depot", 40.5005, -74.2005)

    assert from_cache is True
    assert result.ok
    assert router.calls_made == 2


def test_drift_across_rounding_boundary_still_reuses(tmp_path: Path) -> None:
    router = DummyRouter()
    cache = _cache(tmp_path, router, FakeClock())
    cache.get_or_compute("v1", "Depot", 40.5004, -74.2)

    _, from_cache = cache.get_or_compute("v1", "Depot", 40.5006, -74.2)

    assert cache_key("v1", "Depot", 40.5004, -74.2) != cache_key("v1", "Depot", 40.5006, -74.2)
    assert from_cache is True


def test_large_drift_recomputes(tmp_path: Path) -> None:
    router = DummyRouter()
    cache = _cache(tmp_path, router, FakeClock())
    cache.get_or_compute("v1", "Depot", 40.5, -74.2)

    _, from_cache = cache.get_or_compute("v1", "Depot", 40.5015, -74.2)

    assert from_cache is False
    assert router.calls_made == 4


def test_entries_expire_after_two_hours(tmp_path: Path) -> None:
    router = DummyRouter()
    clock = FakeClock()
    cache = _cache(tmp_path, router, clock)
    cache.get_or_compute("v1", "Depot", 40.5, -74.2)

    clock.now = START + timedelta(hours=1, minutes=59)
    assert cache.get_or_compute("v1", "Depot", 40.5, -74.2)[1] is True

    clock.now = START + timedelta(hours=2, minutes=1)
    assert cache.lookup("v1", "Depot", 40.5, -74.2) is None
    assert cache.get_or_compute("v1", "Depot", 40.5, -74.2)[1] is False


def test_different_destination_is_a_miss(tmp_path: Path) -> None:
    cache = _cache(tmp_path, DummyRouter(), FakeClock())
    cache.get_or_compute("v1", "Depot", 40.5, -74.2)

    assert cache.lookup("v1", "Warehouse", 40.5, -74.2) is None
    assert cache.lookup("v2", "Depot", 40.5, -74.2) is None


def test_failures_are_tagged_and_never_cached(tmp_path: Path) -> None:
    router = DummyRouter(fail_with=NotFoundError("Address not found: Nowhere"))
    cache = _cache(tmp_path, router, FakeClock())

    result, from_cache = cache.get_or_compute("v1", "Nowhere", 40.5, -74.2)

    assert from_cache is False
    assert not result.ok
    assert result.distance_m is None
    assert result.duration_in_minutes is None
    assert "Address not found" in result.error
    assert len(cache) == 0
    with pytest.raises(ValueError):
        cache.store_result("v1", result, 40.5, -74.2)


def test_negative_duration_is_rejected(tmp_path: Path) -> None:
    cache = _cache(tmp_path, DummyRouter(seconds=-5), FakeClock())

    result, _ = cache.get_or_compute("v1", "Depot", 40.5, -74.2)

    assert not result.ok
    assert len(cache) == 0


def test_infinite_duration_is_rejected(tmp_path: Path) -> None:
    cache = _cache(tmp_path, DummyRouter(seconds=float("inf")), FakeClock())

    result, from_cache = cache.get_or_compute("v1", "Depot", 40.5, -74.2)

    assert from_cache is False
    assert not result.ok
    assert "finite" in result.error
    assert len(cache) == 0


def test_entries_survive_restart(tmp_path: Path) -> None:
    clock = FakeClock()
    _cache(tmp_path, DummyRouter(), clock).get_or_compute("v1", "Depot", 40.5, -74.2)

    router = DummyRouter()
    reloaded = _cache(tmp_path, router, clock)
    result, from_cache = reloaded.get_or_compute("v1", "Depot", 40.5, -74.2)

    assert from_cache is True
    assert router.calls_made == 0
    assert isinstance(reloaded.latest_results()["v1"], DistanceResult)


def test_clear_empties_cache_and_store(tmp_path: Path) -> None:
    cache = _cache(tmp_path, DummyRouter(), FakeClock())
    cache.get_or_compute("v1", "Depot", 40.5, -74.2)

    cache.clear()

    assert len(cache) == 0
    assert FileStorage(root=tmp_path).read_json("distance_cache") is None
    assert len(_cache(tmp_path, DummyRouter(), FakeClock())) == 0
