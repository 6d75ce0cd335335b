"""
OSM response parser

Parses Overpass API responses into OSMElement objects
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from ...geometry import is_valid_coordinate
from .models import OSMElement


class OSMResponseParser:
    """Parses Overpass API responses"""

    @staticmethod
    def _lonlat(node: Any) -> Optional[List[float]]:
        """Overpass gives {lat, lon} objects; convert to [lon, lat]"""
        if isinstance(node, dict):
            lat, lon = node.get("lat"), node.get("lon")
        elif isinstance(node, (list, tuple)) and len(node) >= 2:
            lon, lat = node[0], node[1]
        else:
            return None
        if not is_valid_coordinate(lat, lon):
            return None
        return [float(lon), float(lat)]

    @classmethod
    def _geometry(cls, nodes: Any) -> List[List[float]]:
        coords = []
        for node in nodes or []:
            pair = cls._lonlat(node)
            if pair is not None:
                coords.append(pair)
        return coords

    @classmethod
    def parse_elements(cls, data: Dict[str, Any]) -> List[OSMElement]:
        """
        Parse Overpass response into elements

        Handles 'out geom' (inline way/member geometry) and 'out center'.
        Coordinates that are missing, out of range or (0, 0) are dropped.

        Args:
            data: JSON response from Overpass API

        Returns:
            List of OSMElement
        """
        elements = []
        for raw in data.get("elements", []):
            el_type = raw.get("type")
            if el_type not in ("node", "way", "relation") or "id" not in raw:
                continue

            element = OSMElement(id=raw["id"], type=el_type, tags=raw.get("tags") or {})

            if el_type == "node":
                element.point = cls._lonlat(raw)
            if "center" in raw:
                element.center = cls._lonlat(raw["center"])
            if "geometry" in raw:
                element.geometry = cls._geometry(raw["geometry"])
            for member in raw.get("members", []):
                member_geom = cls._geometry(member.get("geometry"))
                if member_geom:
                    element.members.append(member_geom)

            elements.append(element)

        logger.debug(f"Parsed {len(elements)} OSM elements")
        return elements
