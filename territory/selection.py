"""
Area -> Municipality -> Community selection state

Selecting a node at any level clears every deeper selection along with the
resolver caches, street lists and detection results derived from it.
"""

from typing import Dict, List, Optional

from loguru import logger

from .errors import HierarchyValidationError
from .models import GeoLevel, GeoNode, Street
from .resolver import GeographicResolver
from .session import DetectionSession
from .streets import StreetDiscoveryService


class HierarchySelection:
    """Current hierarchy selection for one user"""

    def __init__(
        self,
        resolver: GeographicResolver,
        streets: StreetDiscoveryService,
        session: Optional[DetectionSession] = None
    ):
        self.resolver = resolver
        self.streets = streets
        self.session = session or DetectionSession()
        self._nodes: Dict[GeoLevel, GeoNode] = {}

    @property
    def area(self) -> Optional[GeoNode]:
        return self._nodes.get(GeoLevel.AREA)

    @property
    def municipality(self) -> Optional[GeoNode]:
        return self._nodes.get(GeoLevel.MUNICIPALITY)

    @property
    def community(self) -> Optional[GeoNode]:
        return self._nodes.get(GeoLevel.COMMUNITY)

    @property
    def selected_streets(self) -> List[Street]:
        return list(self.session.selected_streets)

    def parent_of(self, level: GeoLevel) -> Optional[GeoNode]:
        if level.depth == 0:
            return None
        return self._nodes.get(list(GeoLevel)[level.depth - 1])

    def search(self, level: GeoLevel, query: str) -> List[GeoNode]:
        """Candidates for a level, scoped by the parent selection"""
        return self.resolver.resolve(level, query, self.parent_of(level))

    def select(self, level: GeoLevel, node: Optional[GeoNode]) -> None:
        """Set (or clear, with None) one level and drop everything below it"""
        previous_community = self.community
        for deeper in list(self._nodes):
            if deeper.depth > level.depth:
                del self._nodes[deeper]
        if node is None:
            self._nodes.pop(level, None)
        else:
            if node.level != level:
                raise ValueError(f"Cannot select a {node.level.value} as {level.value}")
            self._nodes[level] = node

        self.resolver.invalidate_below(level)
        if previous_community is not None:
            self.streets.invalidate(previous_community.id)
        self.session.reset()
        logger.debug(f"Selected {level.value}: {node.name if node else None}")

    def select_streets(self, streets: List[Street]) -> int:
        """New street selection; returns the new session version"""
        return self.session.select_streets(streets)

    def validate(self) -> None:
        """
        Raises:
            HierarchyValidationError: If Area or Municipality is missing
        """
        missing = [lvl.value for lvl in (GeoLevel.AREA, GeoLevel.MUNICIPALITY) if lvl not in self._nodes]
        if missing:
            raise HierarchyValidationError(f"Missing selection: {', '.join(missing)}")
