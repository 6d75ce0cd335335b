"""
Community bounding box derivation

Walks the boundary ladder (neighbourhood -> suburb -> admin level 9/10 ->
any same-named area way) against Overpass, takes the extrema of the first
rung that returns geometry and pads them. A community without boundary
geometry raises BoundaryUnavailable; no default box is substituted.
"""

import threading
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .collectors.osm import OSMResponseParser
from .collectors.osm.queries import BOUNDARY_LADDER, boundary_query
from .config import PipelineConfig, get_config
from .errors import BoundaryUnavailable
from .geometry import BoundingBox
from .models import GeoNode
from .session import DetectionSession
from .tiers import Tier, run_tiers


class BoundaryRungTier(Tier[List[float]]):
    """One rung of the boundary ladder; yields [lon, lat] coordinates"""

    def __init__(self, resolver: "CommunityBoundaryResolver", rung: int):
        self.resolver = resolver
        self.rung = rung
        self.name = BOUNDARY_LADDER[rung][0]

    def fetch(self, community: str, municipality: Optional[str], session: Optional[DetectionSession]) -> List[List[float]]:
        if session is not None:
            session.charge(self.resolver.overpass.provider)
        ql = boundary_query(self.rung, community, municipality, self.resolver.config.api.overpass_timeout)
        elements = OSMResponseParser.parse_elements(self.resolver.overpass.query(ql))
        return [c for element in elements for c in element.coordinates()]


class CommunityBoundaryResolver:
    """Padded bounding box per community, cached until invalidated"""

    def __init__(self, overpass: Any, config: Optional[PipelineConfig] = None):
        self.overpass = overpass
        self.config = config or get_config()
        self._cache: Dict[Tuple[str, Optional[str]], BoundingBox] = {}
        self._lock = threading.Lock()

    def bounding_box(
        self,
        community: GeoNode,
        municipality: Optional[GeoNode] = None,
        session: Optional[DetectionSession] = None
    ) -> BoundingBox:
        """
        Padded bounding box of a community

        Raises:
            BoundaryUnavailable: If no rung of the ladder returned geometry
        """
        key = (community.id, municipality.id if municipality else None)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        municipality_name = municipality.name if municipality else None
        tiers = [BoundaryRungTier(self, i) for i in range(len(BOUNDARY_LADDER))]
        run = run_tiers(tiers, community.name, municipality_name, session)

        if not run.items:
            logger.error(f"No boundary geometry for '{community.name}': {'; '.join(o.describe() for o in run.outcomes)}")
            raise BoundaryUnavailable(community.name, run.exhausted())

        bbox = BoundingBox.from_points(run.items).pad(self.config.detection.boundary_padding_m)
        logger.info(
            f"Boundary for '{community.name}' from {run.winner}: "
            f"({bbox.south:.5f}, {bbox.west:.5f}, {bbox.north:.5f}, {bbox.east:.5f})"
        )
        with self._lock:
            self._cache[key] = bbox
        return bbox

    def invalidate(self, community_id: Optional[str] = None) -> None:
        """Forget one community's box, or all of them"""
        with self._lock:
            if community_id is None:
                self._cache.clear()
                return
            for key in [k for k in self._cache if k[0] == community_id]:
                del self._cache[key]
