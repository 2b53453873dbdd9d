#!/usr/bin/env python3
"""Verify connectivity to the Motive and Mapbox APIs with the configured credentials."""

import sys
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from truckwatch.config import settings
from truckwatch.errors import TrackingError
from truckwatch.services.routing.mapbox_client import MapboxClient
from truckwatch.services.telemetry.client import TelemetryClient


def check_motive() -> bool:
    print("1. Checking Motive configuration...")
    if not settings.motive_api_key:
        print("   [ERROR] Motive API key is not configured")
        print("   Please set TRUCKWATCH_MOTIVE_API_KEY in your .env file")
        return False
    print(f"   [OK] Motive Base URL: {settings.motive_base_url}")
    client = TelemetryClient(min_request_interval=0)
    try:
        if not client.test_connection():
            print("   [ERROR] Motive API did not accept the request")
            return False
        print("   [OK] Motive API is reachable")
        return True
    finally:
        client.close()


def check_mapbox() -> bool:
    print("2. Checking Mapbox configuration...")
    if not settings.mapbox_access_token:
        print("   [ERROR] Mapbox access token is not configured")
        print("   Please set TRUCKWATCH_MAPBOX_ACCESS_TOKEN in your .env file")
        return False
    client = MapboxClient()
    try:
        if not client.test_connection():
            print("   [ERROR] Mapbox geocoding failed")
            return False
        print("   [OK] Mapbox geocoding works")
        try:
            # Times Square to Central Park
            leg = client.route_distance(40.758, -73.9855, 40.7829, -73.9654)
        except TrackingError as exc:
            print(f"   [ERROR] Directions request failed: {exc}")
            return False
        print(f"   [OK] Sample route: {leg.meters:.0f} m, {leg.seconds:.0f} s")
        return True
    finally:
        client.close()


def main() -> int:
    print("=" * 60)
    print("Provider Connection Test")
    print("=" * 60)
    results = [check_motive(), check_mapbox()]
    print()
    if all(results):
        print("[SUCCESS] Both providers are connected and working!")
        return 0
    print("[FAILED] One or more providers could not be reached")
    return 1


if __name__ == "__main__":
    sys.exit(main())
