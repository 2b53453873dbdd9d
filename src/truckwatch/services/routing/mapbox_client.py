"""HTTP client for Mapbox geocoding and driving-directions services."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ...config import settings
from ...errors import (
    ConfigurationError,
    NotFoundError,
    TrackingError,
    TransportError,
    raise_for_provider_status,
    wrap_transport_error,
)

PROVIDER = "Mapbox"
COORDINATE_PRECISION = 6
CONNECTION_TEST_ADDRESS = "1600 Amphitheatre Parkway, Mountain View, CA"

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    lat: float
    lng: float
    formatted_address: str


@dataclass(frozen=True, slots=True)
class RouteLeg:
    meters: float
    seconds: float


def normalize_address(address: str) -> str:
    return address.strip().lower()


def route_key(from_lat: float, from_lng: float, to_lat: float, to_lng: float) -> str:
    p = COORDINATE_PRECISION
    return f"{from_lat:.{p}f},{from_lng:.{p}f}-{to_lat:.{p}f},{to_lng:.{p}f}"


class MapboxClient:
    """Geocoding and routing with per-process memoisation of both lookups.

    ``calls_made`` counts requests that actually reached the provider; memoised
    answers do not increment it.
    """

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.access_token = access_token if access_token is not None else settings.mapbox_access_token
        if not self.access_token:
            raise ConfigurationError("Mapbox access token is not configured.", provider=PROVIDER)
        self.base_url = (base_url or settings.mapbox_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.mapbox_timeout_seconds
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0))
        self._geocode_cache: dict[str, GeocodeResult] = {}
        self._route_cache: dict[str, RouteLeg] = {}
        self._lock = threading.Lock()
        self.calls_made = 0

    def close(self) -> None:
        self._client.close()

    def _get(self, url: str, params: dict[str, Any], timeout: float | None) -> dict:
        with self._lock:
            self.calls_made += 1
        try:
            response = self._client.get(
                url,
                params={**params, "access_token": self.access_token},
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.HTTPError as exc:
            raise wrap_transport_error(exc, PROVIDER) from exc
        raise_for_provider_status(response, PROVIDER)
        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(f"{PROVIDER} returned invalid JSON: {exc}", provider=PROVIDER) from exc
        if not isinstance(data, dict):
            raise TransportError(f"{PROVIDER} returned an unexpected payload", provider=PROVIDER)
        return data

    def geocode(self, address: str, *, timeout: float | None = None) -> GeocodeResult:
        """Resolve free-text ``address`` to coordinates."""
        key = normalize_address(address)
        if not key:
            raise NotFoundError("Cannot geocode an empty address", provider=PROVIDER)
        with self._lock:
            cached = self._geocode_cache.get(key)
        if cached is not None:
            logger.debug(f"Using cached geocoding result for '{address}'")
            return cached

        url = f"{self.base_url}/geocoding/v5/mapbox.places/{quote(address.strip(), safe='')}.json"
        data = self._get(url, {"limit": 1}, timeout)
        features = data.get("features") or []
        if not features:
            raise NotFoundError(f"Address not found: {address}", provider=PROVIDER)

        feature = features[0]
        try:
            lng, lat = feature["center"][:2]
            result = GeocodeResult(lat=float(lat), lng=float(lng), formatted_address=feature.get("place_name", address))
        except (KeyError, TypeError, ValueError) as exc:
            raise TransportError(f"Malformed geocoding feature for '{address}': {exc}", provider=PROVIDER) from exc
        with self._lock:
            self._geocode_cache[key] = result
        logger.info(f"Geocoded '{address}' to {result.lat:.6f},{result.lng:.6f}")
        return result

    def route_distance(
        self,
        from_lat: float,
        from_lng: float,
        to_lat: float,
        to_lng: float,
        *,
        timeout: float | None = None,
    ) -> RouteLeg:
        """Driving distance (meters) and duration (seconds) between two points."""
        key = route_key(from_lat, from_lng, to_lat, to_lng)
        with self._lock:
            cached = self._route_cache.get(key)
        if cached is not None:
            logger.debug(f"Using cached route for {key}")
            return cached

        coordinates = f"{from_lng},{from_lat};{to_lng},{to_lat}"
        url = f"{self.base_url}/directions/v5/mapbox/driving/{coordinates}"
        data = self._get(url, {"geometries": "geojson", "overview": "simplified"}, timeout)
        routes = data.get("routes") or []
        if not routes:
            raise NotFoundError(f"No route found for {key}", provider=PROVIDER)

        try:
            leg = RouteLeg(meters=float(routes[0]["distance"]), seconds=float(routes[0]["duration"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise TransportError(f"Malformed route for {key}: {exc}", provider=PROVIDER) from exc
        with self._lock:
            self._route_cache[key] = leg
        logger.info(f"Route {key}: {leg.meters:.0f} m, {leg.seconds:.0f} s")
        return leg

    def clear_cache(self) -> None:
        with self._lock:
            self._geocode_cache.clear()
            self._route_cache.clear()
        logger.info("Mapbox caches cleared")

    def cache_stats(self) -> dict[str, int]:
        with self._lock:
            return {"geocode_entries": len(self._geocode_cache), "route_entries": len(self._route_cache)}

    def test_connection(self) -> bool:
        try:
            self.geocode(CONNECTION_TEST_ADDRESS)
        except TrackingError as exc:
            logger.error(f"Mapbox connection test failed: {exc}")
            return False
        return True
