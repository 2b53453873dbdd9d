from datetime import datetime, timedelta, timezone

import pytest

from truckwatch.errors import AuthenticationError, ExhaustedError, ProviderHTTPError, RateLimitedError
from truckwatch.services.telemetry import orchestrator as orchestrator_module
from truckwatch.services.telemetry.orchestrator import FetchOrchestrator

NOW = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)


class DummyTelemetry:
    """Scripted stand-in for the telemetry client; records every call."""

    def __init__(self, pages=None, listed=None, locations=None, current=None, assets=None, fleet=None) -> None:
        self.pages = pages or []
        self.listed = listed if listed is not None else {"vehicles": []}
        self.locations = locations or {}
        self.current = current if current is not None else {"vehicles": []}
        self.asset_payload = assets if assets is not None else {"data": []}
        self.fleet = fleet if fleet is not None else {"vehicles": []}
        self.calls: list[str] = []

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return value

    def vehicle_locations_page(self, page: int, per_page: int):
        self.calls.append(f"page:{page}")
        if page <= len(self.pages):
            return self._answer(self.pages[page - 1])
        return {"vehicles": []}

    def fleet_vehicle_locations(self, fleet_id: str):
        self.calls.append(f"fleet:{fleet_id}")
        return self._answer(self.fleet)

    def list_vehicles(self):
        self.calls.append("list")
        return self._answer(self.listed)

    def vehicle_locations(self, vehicle_id: str, limit: int = 1):
        self.calls.append(f"locations:{vehicle_id}")
        return self._answer(self.locations.get(vehicle_id, {"vehicle_locations": []}))

    def current_locations(self):
        self.calls.append("current")
        return self._answer(self.current)

    def assets(self):
        self.calls.append("assets")
        return self._answer(self.asset_payload)


def _orchestrator(client: DummyTelemetry, fleet_id: str | None = None, sleeps: list | None = None, **kwargs):
    sink = sleeps if sleeps is not None else []
    return FetchOrchestrator(
        client,
        fleet_id,
        clock=lambda: NOW,
        sleep=sink.append,
        individual_delay=0.1,
        **kwargs,
    )


def _unlocated(vid: int) -> dict:
    return {"vehicle": {"id": vid, "number": f"T-{vid}", "current_location": {"lat": 0, "lon": 0}}}


@pytest.fixture(autouse=True)
def no_configured_fleet(monkeypatch):
    monkeypatch.setattr(orchestrator_module.settings, "motive_fleet_id", None)


def test_skips_strategy_without_valid_coordinates_and_uses_individual_lookup() -> None:
    client = DummyTelemetry(
        pages=[{"vehicles": [_unlocated(1), _unlocated(2)]}],
        listed={"vehicles": [{"vehicle": {"id": 1, "number": "T-1"}}, {"vehicle": {"id": 2, "number": "T-2"}}]},
        locations={
            "1": {"vehicle_locations": [{"lat": 40.7, "lon": -74.0, "located_at": NOW.isoformat()}]},
            "2": {"vehicle_locations": [{"lat": 41.2, "lng": -73.1, "located_at": NOW.isoformat()}]},
        },
    )
    sleeps: list[float] = []

    result = _orchestrator(client, sleeps=sleeps).fetch()

    assert result.strategy == "Individual vehicle locations"
    assert [vehicle.id for vehicle in result.vehicles] == ["1", "2"]
    assert result.stats.valid == 2
    assert result.failures[0][0] == "Paginated vehicle locations"
    assert "current" not in client.calls
    assert sleeps == [0.1]


def test_pagination_stops_after_two_empty_pages() -> None:
    located = {"vehicles": [{"id": 1, "lat": 40.7, "lon": -74.0}]}
    client = DummyTelemetry(pages=[located, {"vehicles": []}, located])

    vehicles = _orchestrator(client, max_empty_pages=2).fetch_paginated_locations()

    assert len(vehicles) == 2
    assert client.calls == ["page:1", "page:2", "page:3", "page:4", "page:5"]


def test_pagination_respects_page_cap() -> None:
    located = {"vehicles": [{"id": 1, "lat": 40.7, "lon": -74.0}]}
    client = DummyTelemetry(pages=[located] * 10)

    vehicles = _orchestrator(client, max_pages=3).fetch_paginated_locations()

    assert len(vehicles) == 3
    assert client.calls == ["page:1", "page:2", "page:3"]


def test_pagination_keeps_records_when_a_later_page_fails() -> None:
    located = {"vehicles": [{"id": 1, "lat": 40.7, "lon": -74.0}]}
    client = DummyTelemetry(pages=[located, ProviderHTTPError("boom", status_code=500)])

    result = _orchestrator(client).fetch()

    assert result.strategy == "Paginated vehicle locations"
    assert len(result.vehicles) == 1


def test_fleet_strategy_only_runs_with_fleet_id() -> None:
    without = _orchestrator(DummyTelemetry())
    with_fleet = _orchestrator(DummyTelemetry(), fleet_id="F9")

    assert "Fleet vehicle locations" not in [strategy.name for strategy in without.strategies()]
    assert [strategy.name for strategy in with_fleet.strategies()][1] == "Fleet vehicle locations"


def test_authentication_failure_aborts_immediately() -> None:
    client = DummyTelemetry(pages=[AuthenticationError("bad key", status_code=401)])

    with pytest.raises(AuthenticationError):
        _orchestrator(client).fetch()
    assert client.calls == ["page:1"]


def test_rate_limit_is_surfaced_not_retried() -> None:
    client = DummyTelemetry(pages=[RateLimitedError("slow down", status_code=429)])

    with pytest.raises(RateLimitedError):
        _orchestrator(client).fetch()
    assert client.calls == ["page:1"]


def test_transport_failures_fall_through_to_later_strategies() -> None:
    client = DummyTelemetry(
        listed=ProviderHTTPError("server error", status_code=500),
        current=ProviderHTTPError("server error", status_code=502),
        assets={"data": [{"id": "A1", "name": "Trailer", "location": {"latitude": 35.2, "longitude": -80.8}}]},
    )

    result = _orchestrator(client).fetch()

    assert result.strategy == "Assets"
    assert result.vehicles[0].truck_number == "Trailer"


def test_all_strategies_failing_raises_exhausted() -> None:
    client = DummyTelemetry(listed=ProviderHTTPError("server error", status_code=500))

    with pytest.raises(ExhaustedError) as excinfo:
        _orchestrator(client).fetch()

    assert [name for name, _ in excinfo.value.failures] == [
        "Paginated vehicle locations",
        "Individual vehicle locations",
        "Current locations",
        "Assets",
    ]


def test_individual_lookup_is_bounded() -> None:
    listed = {"vehicles": [{"id": index} for index in range(1, 6)]}
    client = DummyTelemetry(listed=listed)

    _orchestrator(client, max_individual_vehicles=3).fetch_individual_locations()

    assert [call for call in client.calls if call.startswith("locations:")] == [
        "locations:1",
        "locations:2",
        "locations:3",
    ]


def test_old_positions_are_marked_stale() -> None:
    old = (NOW - timedelta(hours=2)).isoformat()
    client = DummyTelemetry(current={"vehicles": [{"id": 1, "lat": 40.7, "lon": -74.0, "speed": 40, "updated_at": old}]})

    vehicles = _orchestrator(client).fetch_current_locations()

    assert vehicles[0].status.value == "stale"
