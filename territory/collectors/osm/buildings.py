"""
Building-specific logic

Turns Overpass building elements into Building records: location from the
footprint centroid, address from addr:* tags, house number parsed.
"""

from typing import List, Optional, Tuple

from loguru import logger
from shapely.geometry import MultiPoint, Polygon

from ...addresses import compose_address, parse_house_number
from ...config import PipelineConfig, get_config
from ...geometry import is_valid_coordinate
from ...models import Building, BuildingSource
from .models import OSMElement


class BuildingProcessor:
    """Processes buildings from OSM data"""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or get_config()

    def parse_buildings(self, elements: List[OSMElement], street_name: Optional[str] = None) -> List[Building]:
        """
        Parse building elements into Building records

        Args:
            elements: Parsed Overpass elements
            street_name: Street being searched; used when addr:street is missing

        Returns:
            Buildings with valid coordinates, in response order
        """
        confidence = self.config.inference.source_confidence.get(BuildingSource.OVERPASS.value, 0.9)
        buildings = []
        skipped = 0
        for element in elements:
            tags = element.tags
            if "building" not in tags:
                continue

            location = self._location(element)
            if location is None:
                skipped += 1
                continue
            lat, lng = location

            number_tag = tags.get("addr:housenumber")
            street = tags.get("addr:street") or street_name
            if number_tag:
                address = compose_address(number_tag, street, tags.get("addr:city"), tags.get("addr:postcode"))
            else:
                # Unnumbered footprints are told apart by position
                address = f"{street or 'Building'}, {lat:.6f}, {lng:.6f}"

            buildings.append(Building(
                id=f"osm_{element.type}_{element.id}",
                address=address,
                house_number=parse_house_number(number_tag),
                lat=lat,
                lng=lng,
                source=BuildingSource.OVERPASS,
                confidence=confidence,
                street=street,
                building_type=tags.get("building"),
            ))

        if skipped:
            logger.debug(f"Skipped {skipped} OSM buildings without usable geometry")
        return buildings

    def _location(self, element: OSMElement) -> Optional[Tuple[float, float]]:
        """(lat, lng) of the element: node point, Overpass centre, or footprint centroid"""
        point = element.point or element.center
        if point is None:
            point = self._centroid(element)
        if point is None or not is_valid_coordinate(point[1], point[0]):
            return None
        return point[1], point[0]

    @staticmethod
    def _centroid(element: OSMElement) -> Optional[List[float]]:
        coords = element.geometry
        if coords:
            # Skip point-like footprints (less than 3 unique points)
            if len({(round(c[0], 8), round(c[1], 8)) for c in coords}) < 3:
                c = coords[0]
                return [c[0], c[1]]
            centroid = Polygon(coords).centroid
            if centroid.is_empty:
                return None
            return [centroid.x, centroid.y]

        member_coords = element.coordinates()
        if not member_coords:
            return None
        centroid = MultiPoint(member_coords).convex_hull.centroid
        if centroid.is_empty:
            return None
        return [centroid.x, centroid.y]
