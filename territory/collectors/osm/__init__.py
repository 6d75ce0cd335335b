"""
OpenStreetMap data access

Modular Overpass access with separate components for:
- API client: Overpass API communication
- Queries: Overpass QL builders (boundary ladder, streets, buildings)
- Models: Data structures (OSMElement)
- Parser: Response parsing
- Buildings: Building records from building elements
- Roads: Residential streets from highway ways
"""

from .api_client import OverpassAPIClient
from .buildings import BuildingProcessor
from .models import OSMElement
from .parser import OSMResponseParser
from .roads import RoadProcessor

__all__ = [
    "OverpassAPIClient",
    "BuildingProcessor",
    "OSMElement",
    "OSMResponseParser",
    "RoadProcessor",
]
