"""Vehicle telemetry fetching and normalization."""

from .client import TelemetryClient
from .orchestrator import FetchOrchestrator, FetchResult

__all__ = ["TelemetryClient", "FetchOrchestrator", "FetchResult"]
