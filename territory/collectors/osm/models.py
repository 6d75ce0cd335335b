"""
OSM data models

Data class for representing Overpass elements (nodes, ways, relations)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class OSMElement:
    """One element from an Overpass 'out geom' / 'out center' response"""
    id: int
    type: str  # node | way | relation
    tags: Dict[str, str] = field(default_factory=dict)
    point: Optional[List[float]] = None  # [lon, lat] for nodes
    center: Optional[List[float]] = None  # [lon, lat] from 'out center'
    geometry: List[List[float]] = field(default_factory=list)  # [[lon, lat], ...] for ways
    members: List[List[List[float]]] = field(default_factory=list)  # member way geometries for relations

    @property
    def name(self) -> Optional[str]:
        return self.tags.get("name")

    def coordinates(self) -> List[List[float]]:
        """Every [lon, lat] this element carries"""
        coords: List[List[float]] = []
        if self.point:
            coords.append(self.point)
        if self.center:
            coords.append(self.center)
        coords.extend(self.geometry)
        for member in self.members:
            coords.extend(member)
        return coords
