"""
Road-specific logic

Handles residential street parsing from OSM ways
"""

from typing import Dict, List, Optional, Tuple

from shapely.geometry import LineString

from ...config import PipelineConfig, get_config
from ...geometry import BoundingBox
from ...models import Street, StreetSource
from .models import OSMElement


class RoadProcessor:
    """Processes residential roads from OSM data"""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or get_config()

    def parse_streets(self, elements: List[OSMElement]) -> List[Street]:
        """
        Parse named residential ways into streets, one per name

        Ways sharing a name (case-insensitive) are merged: the first way's id
        is kept, the geometry of the longest way is used for the
        representative point, and the bounding box covers all of them.

        Args:
            elements: Parsed Overpass elements

        Returns:
            List of Street sorted by name
        """
        allowed = set(self.config.detection.street_highway_types)
        grouped: Dict[str, List[OSMElement]] = {}
        for element in elements:
            if element.type != "way":
                continue
            name = (element.name or "").strip()
            if not name or element.tags.get("highway") not in allowed:
                continue
            if len(element.geometry) < 2:
                continue
            grouped.setdefault(name.lower(), []).append(element)

        streets = []
        for ways in grouped.values():
            first = ways[0]
            longest = max(ways, key=lambda w: LineString(w.geometry).length)
            all_coords = [c for w in ways for c in w.geometry]
            bbox = BoundingBox.from_points(all_coords)
            streets.append(Street(
                id=f"osm_way_{first.id}",
                name=first.name.strip(),
                representative_point=self._midpoint(longest.geometry),
                bounding_box=(bbox.south, bbox.west, bbox.north, bbox.east),
                geometry=longest.geometry,
                source=StreetSource.OVERPASS,
                highway=first.tags.get("highway"),
            ))

        streets.sort(key=lambda s: s.name.lower())
        return streets

    @staticmethod
    def _midpoint(coords: List[List[float]]) -> Tuple[float, float]:
        """(lat, lon) halfway along the centreline"""
        line = LineString(coords)
        mid = line.interpolate(0.5, normalized=True)
        return mid.y, mid.x
