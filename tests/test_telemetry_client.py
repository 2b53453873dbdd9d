import httpx
import pytest

from truckwatch.errors import (
    AuthenticationError,
    ConfigurationError,
    ProviderHTTPError,
    ProviderTimeoutError,
    RateLimitedError,
    TransportError,
)
from truckwatch.services.telemetry.client import RateGate, TelemetryClient


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _client(handler, **kwargs) -> TelemetryClient:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return TelemetryClient(
        api_key="secret-key",
        base_url="https://telemetry.test/v1",
        min_request_interval=0,
        http_client=http_client,
        **kwargs,
    )


def test_missing_api_key_is_a_configuration_error(monkeypatch) -> None:
    from truckwatch.services.telemetry import client as client_module

    monkeypatch.setattr(client_module.settings, "motive_api_key", None)

    with pytest.raises(ConfigurationError):
        TelemetryClient()


def test_requests_carry_key_header_and_page_params() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"vehicles": []})

    client = _client(handler)

    assert client.vehicle_locations_page(page=3, per_page=25) == {"vehicles": []}
    request = seen[0]
    assert request.url.path == "/v1/vehicle_locations"
    assert request.url.params["page_no"] == "3"
    assert request.url.params["per_page"] == "25"
    assert request.headers["x-api-key"] == "secret-key"
    assert client.request_count == 1


def test_endpoint_paths() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=[])

    client = _client(handler)
    client.fleet_vehicle_locations("F1")
    client.list_vehicles()
    client.vehicle_locations("42")
    client.current_locations()
    client.assets()

    assert paths == [
        "/v1/fleets/F1/vehicles_locations",
        "/v1/vehicles",
        "/v1/vehicles/42/locations",
        "/v1/vehicles/locations",
        "/v1/assets",
    ]


@pytest.mark.parametrize(
    ("status_code", "error_type"),
    [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (429, RateLimitedError),
        (500, ProviderHTTPError),
    ],
)
def test_http_errors_are_mapped(status_code: int, error_type: type) -> None:
    client = _client(lambda request: httpx.Response(status_code, json={"error": "nope"}))

    with pytest.raises(error_type) as excinfo:
        client.list_vehicles()

    assert excinfo.value.status_code == status_code
    assert excinfo.value.provider == "Motive"


def test_timeout_is_distinct_from_other_transport_failures() -> None:
    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderTimeoutError):
        _client(slow).list_vehicles()
    with pytest.raises(TransportError) as excinfo:
        _client(refused).list_vehicles()
    assert not isinstance(excinfo.value, ProviderTimeoutError)


def test_invalid_json_is_a_transport_error() -> None:
    client = _client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))

    with pytest.raises(TransportError):
        client.assets()


def test_connection_check_reports_failure_without_raising() -> None:
    assert _client(lambda request: httpx.Response(200, json={"vehicles": []})).test_connection() is True
    assert _client(lambda request: httpx.Response(401)).test_connection() is False


def test_rate_gate_delays_calls_inside_interval() -> None:
    clock = FakeClock()
    gate = RateGate(2.0, clock=clock, sleep=clock.sleep)

    assert gate.wait() == 0.0
    clock.now += 0.5
    assert gate.wait() == pytest.approx(1.5)
    clock.now += 3.0
    assert gate.wait() == 0.0
    assert clock.sleeps == [pytest.approx(1.5)]


def test_client_calls_pass_through_gate() -> None:
    clock = FakeClock()
    gate = RateGate(2.0, clock=clock, sleep=clock.sleep)
    client = _client(lambda request: httpx.Response(200, json=[]), gate=gate)

    client.list_vehicles()
    client.list_vehicles()
    client.list_vehicles()

    assert clock.sleeps == [pytest.approx(2.0), pytest.approx(2.0)]
