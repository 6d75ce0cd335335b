"""
External provider clients
"""

from .backend import TerritoryAPIClient
from .nominatim import NominatimClient
from .osm import OverpassAPIClient
from .places import GooglePlacesClient
from .rate_limit import ProviderRateLimiter, get_rate_limiter

__all__ = [
    "TerritoryAPIClient",
    "NominatimClient",
    "OverpassAPIClient",
    "GooglePlacesClient",
    "ProviderRateLimiter",
    "get_rate_limiter",
]
