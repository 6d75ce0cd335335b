"""
Territory boundary synthesis

The boundary is a coarse one: the bounding box of the detected buildings,
padded by a fixed margin, emitted as a closed 5-point rectangle. It bounds
the buildings but never traces their footprints, so backend overlap checks
see a box that can be larger than the settled area.
"""

from typing import Iterable, List, Optional, Sequence

from .config import PipelineConfig, get_config
from .errors import InvalidPolygon
from .geometry import BoundingBox, close_polygon, geodesic_area, point_in_polygon
from .models import Building, GeoJSONPolygon

SQUARE_METERS_PER_HECTARE = 10000.0


class PolygonSynthesizer:
    """Builds the territory polygon and its statistics"""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or get_config()

    def synthesize(self, buildings: Sequence[Building], padding_m: Optional[float] = None) -> GeoJSONPolygon:
        """
        Padded bounding rectangle of the buildings

        Raises:
            InvalidPolygon: If there are no buildings to bound
        """
        if not buildings:
            raise InvalidPolygon("Cannot synthesize a polygon from zero buildings")
        padding = self.config.detection.polygon_padding_m if padding_m is None else padding_m
        bbox = BoundingBox.from_points([b.lng, b.lat] for b in buildings).pad(padding)
        ring = close_polygon(bbox.to_ring())
        return GeoJSONPolygon(coordinates=[ring])

    @staticmethod
    def from_ring(coords: List[List[float]]) -> GeoJSONPolygon:
        """Polygon from an arbitrary [lng, lat] ring, closing it when needed"""
        return GeoJSONPolygon(coordinates=[close_polygon(coords)])

    @staticmethod
    def area(polygon: GeoJSONPolygon) -> float:
        """Geodesic area in square meters"""
        return geodesic_area(polygon.ring)

    @staticmethod
    def density(building_count: int, area_m2: float) -> float:
        """Buildings per hectare; 0 for a zero-area polygon"""
        if area_m2 <= 0:
            return 0.0
        return building_count / (area_m2 / SQUARE_METERS_PER_HECTARE)

    @staticmethod
    def contains(lat: float, lng: float, polygon: GeoJSONPolygon) -> bool:
        return point_in_polygon(lng, lat, polygon.ring)

    def filter_within(self, buildings: Iterable[Building], polygon: GeoJSONPolygon) -> List[Building]:
        return [b for b in buildings if self.contains(b.lat, b.lng, polygon)]
