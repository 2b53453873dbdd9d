"""Distance calculation services."""

from .distance_cache import DistanceCache
from .mapbox_client import MapboxClient
from .scheduler import CalculationScheduler
from .usage import UsageTracker

__all__ = ["DistanceCache", "MapboxClient", "CalculationScheduler", "UsageTracker"]
