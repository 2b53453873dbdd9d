"""HTTP client for the Motive telemetry API."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import httpx

from ...config import settings
from ...errors import ConfigurationError, TrackingError, TransportError, raise_for_provider_status, wrap_transport_error

PROVIDER = "Motive"

logger = logging.getLogger(__name__)


class RateGate:
    """Serialises callers so that consecutive calls are at least ``min_interval`` apart.

    Callers are delayed, never rejected.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_call: float | None = None

    def wait(self) -> float:
        """Block until the next call is allowed; return the seconds waited."""
        with self._lock:
            waited = 0.0
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug(f"Rate limiting: waiting {waited:.2f}s")
                    self._sleep(waited)
            self._last_call = self._clock()
            return waited


class TelemetryClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        min_request_interval: float | None = None,
        http_client: httpx.Client | None = None,
        gate: RateGate | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.motive_api_key
        if not self.api_key:
            raise ConfigurationError("Motive API key is not configured.", provider=PROVIDER)
        self.base_url = (base_url or settings.motive_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.motive_timeout_seconds
        interval = (
            min_request_interval
            if min_request_interval is not None
            else settings.motive_min_request_interval_seconds
        )
        self.gate = gate or RateGate(interval)
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0))
        self.request_count = 0

    def close(self) -> None:
        self._client.close()

    def get_json(self, path: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> Any:
        """GET ``path`` through the rate gate and return the decoded JSON body."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        self.gate.wait()
        self.request_count += 1
        logger.info(f"Telemetry request #{self.request_count}: GET {url} {params or ''}")
        try:
            response = self._client.get(
                url,
                params=params,
                headers={"accept": "application/json", "x-api-key": self.api_key},
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.HTTPError as exc:
            raise wrap_transport_error(exc, PROVIDER) from exc

        raise_for_provider_status(response, PROVIDER)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"{PROVIDER} returned invalid JSON: {exc}", provider=PROVIDER) from exc

    def vehicle_locations_page(self, page: int, per_page: int) -> Any:
        return self.get_json("vehicle_locations", {"per_page": per_page, "page_no": page})

    def fleet_vehicle_locations(self, fleet_id: str) -> Any:
        return self.get_json(f"fleets/{fleet_id}/vehicles_locations")

    def list_vehicles(self) -> Any:
        return self.get_json("vehicles")

    def vehicle_locations(self, vehicle_id: str, limit: int = 1) -> Any:
        return self.get_json(f"vehicles/{vehicle_id}/locations", {"limit": limit})

    def current_locations(self) -> Any:
        return self.get_json("vehicles/locations")

    def assets(self) -> Any:
        return self.get_json("assets")

    def test_connection(self) -> bool:
        """Fetch a single record to confirm the key is accepted."""
        try:
            payload = self.vehicle_locations_page(page=1, per_page=1)
        except TrackingError as exc:
            logger.error(f"Motive connection test failed: {exc}")
            return False
        logger.info(f"Motive connection successful (response keys: {list(payload) if isinstance(payload, dict) else 'list'})")
        return True
