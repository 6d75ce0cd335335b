"""
Residential street discovery

Tiers, tried in order until one yields streets:
1. Overpass residential ways inside the community bounding box
2. Places autocomplete seeded with "{community} {municipality} streets"
3. Static list of known streets for the community

Each community's answer is cached so keystroke filtering stays local.
"""

import re
import threading
from typing import Any, Dict, List, Optional

from loguru import logger

from .addresses import normalize_street, slugify
from .boundary import CommunityBoundaryResolver
from .collectors.osm import OSMResponseParser, RoadProcessor
from .collectors.osm.queries import streets_query
from .config import PipelineConfig, get_config
from .errors import BoundaryUnavailable, ProviderError
from .models import GeoNode, Street, StreetSource
from .session import DetectionSession
from .tiers import Tier, run_tiers

# Opaque tokens Google sometimes returns in place of a readable description
ENCODED_MARKERS = ("EiFSAWRIYXUg",)
_TOKEN = re.compile(r"[A-Za-z0-9+/=_-]{10,}")


def looks_encoded(text: str) -> bool:
    """True for descriptions that are not human-readable"""
    if not text or not text.strip():
        return True
    if any(marker in text for marker in ENCODED_MARKERS):
        return True
    for token in _TOKEN.findall(text):
        inner_upper = sum(1 for ch in token[1:] if ch.isupper())
        if inner_upper >= 2 and any(ch.islower() for ch in token):
            return True
    return False


class OverpassStreetsTier(Tier[Street]):
    name = "overpass residential ways"

    def __init__(self, service: "StreetDiscoveryService"):
        self.service = service

    def fetch(self, community: GeoNode, municipality: GeoNode, session: Optional[DetectionSession]) -> List[Street]:
        try:
            bbox = self.service.boundary.bounding_box(community, municipality, session)
        except BoundaryUnavailable as e:
            raise ProviderError("overpass", str(e)) from e

        overpass = self.service.overpass
        if session is not None:
            session.charge(overpass.provider)
        cfg = self.service.config
        ql = streets_query(bbox, cfg.detection.street_highway_types, cfg.api.overpass_timeout)
        elements = OSMResponseParser.parse_elements(overpass.query(ql))
        streets = RoadProcessor(cfg).parse_streets(elements)
        return streets[:cfg.detection.max_streets_per_community]


class PlacesStreetsTier(Tier[Street]):
    name = "places autocomplete"

    def __init__(self, service: "StreetDiscoveryService"):
        self.service = service

    def fetch(self, community: GeoNode, municipality: GeoNode, session: Optional[DetectionSession]) -> List[Street]:
        places = self.service.places
        if session is not None:
            session.charge(places.provider)
        seed = f"{community.name} {municipality.name} streets"
        predictions = places.autocomplete(seed, types="route")

        streets: Dict[str, Street] = {}
        for prediction in predictions:
            description = prediction.get("description", "")
            if looks_encoded(description):
                logger.debug(f"Dropping unreadable prediction: {description!r}")
                continue
            name = description.split(",")[0].strip()
            if not name or name.lower() in streets:
                continue
            streets[name.lower()] = Street(
                id=f"places_{prediction.get('id') or slugify(name)}",
                name=name,
                source=StreetSource.PLACES,
            )
        return list(streets.values())[:self.service.config.detection.max_autocomplete_streets]


class FallbackStreetsTier(Tier[Street]):
    name = "known streets list"

    def __init__(self, service: "StreetDiscoveryService"):
        self.service = service

    def fetch(self, community: GeoNode, municipality: GeoNode, session: Optional[DetectionSession]) -> List[Street]:
        known = self.service.config.detection.fallback_streets.get(community.name.strip().lower(), [])
        return [
            Street(id=f"fallback_{slugify(name)}", name=name, source=StreetSource.FALLBACK)
            for name in known
        ]


class StreetDiscoveryService:
    """Finds residential streets within a community"""

    def __init__(
        self,
        overpass: Any,
        places: Any,
        boundary: Optional[CommunityBoundaryResolver] = None,
        config: Optional[PipelineConfig] = None
    ):
        self.config = config or get_config()
        self.overpass = overpass
        self.places = places
        self.boundary = boundary or CommunityBoundaryResolver(overpass, self.config)
        self.tiers: List[Tier[Street]] = [
            OverpassStreetsTier(self),
            PlacesStreetsTier(self),
            FallbackStreetsTier(self),
        ]
        self._cache: Dict[str, List[Street]] = {}
        self._lock = threading.Lock()

    def discover(
        self,
        community: GeoNode,
        municipality: GeoNode,
        area: Optional[GeoNode] = None,
        session: Optional[DetectionSession] = None
    ) -> List[Street]:
        """
        Residential streets of a community

        Returns an empty list when every tier comes back empty.
        """
        with self._lock:
            cached = self._cache.get(community.id)
        if cached is not None:
            return list(cached)

        where = ", ".join(n.name for n in (community, municipality, area) if n is not None)
        logger.info(f"Discovering streets in {where}")
        run = run_tiers(self.tiers, community, municipality, session)
        streets = run.items
        if streets:
            logger.info(f"Found {len(streets)} streets via {run.winner}")
            with self._lock:
                self._cache[community.id] = streets
        else:
            logger.warning(f"No streets found for '{community.name}': {'; '.join(o.describe() for o in run.outcomes)}")
        return list(streets)

    def filter(self, community: GeoNode, text: str, municipality: Optional[GeoNode] = None) -> List[Street]:
        """Case-insensitive substring match over the community's cached streets"""
        with self._lock:
            streets = self._cache.get(community.id)
        if streets is None:
            if municipality is None:
                return []
            streets = self.discover(community, municipality)
        needle = (text or "").strip().lower()
        if not needle:
            return list(streets)
        return [s for s in streets if needle in s.name.lower()]

    def find(self, community: GeoNode, name: str) -> Optional[Street]:
        """Cached street with this name, ignoring case and suffix abbreviations"""
        with self._lock:
            streets = self._cache.get(community.id, [])
        target = normalize_street(name)
        for street in streets:
            if normalize_street(street.name) == target:
                return street
        return None

    def invalidate(self, community_id: Optional[str] = None) -> None:
        """Forget cached streets (and the matching boundary boxes)"""
        with self._lock:
            if community_id is None:
                self._cache.clear()
            else:
                self._cache.pop(community_id, None)
        self.boundary.invalidate(community_id)
