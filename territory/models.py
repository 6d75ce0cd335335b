"""
Pydantic models for the territory detection data structures

GeoJSON helpers, the hierarchy/street/building records, and the
TerritoryDraft artifact handed to the persistence collaborator.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ============================================================
# GeoJSON Types
# ============================================================

class GeoJSONPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float]  # [longitude, latitude]


class GeoJSONPolygon(BaseModel):
    type: Literal["Polygon"] = "Polygon"
    coordinates: List[List[List[float]]]  # [[[lon, lat], ...]]

    @property
    def ring(self) -> List[List[float]]:
        return self.coordinates[0] if self.coordinates else []


# ============================================================
# Hierarchy
# ============================================================

class GeoLevel(str, Enum):
    AREA = "area"
    MUNICIPALITY = "municipality"
    COMMUNITY = "community"

    @property
    def depth(self) -> int:
        return _LEVEL_ORDER.index(self)

    def child(self) -> Optional["GeoLevel"]:
        idx = self.depth + 1
        return _LEVEL_ORDER[idx] if idx < len(_LEVEL_ORDER) else None


_LEVEL_ORDER = [GeoLevel.AREA, GeoLevel.MUNICIPALITY, GeoLevel.COMMUNITY]


class GeoNode(BaseModel):
    """A resolved place; identity is the provider id"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    full_name: str
    lat: float
    lon: float
    level: GeoLevel
    source_type: str


# ============================================================
# Streets and buildings
# ============================================================

class StreetSource(str, Enum):
    OVERPASS = "overpass"
    PLACES = "places"
    FALLBACK = "fallback"


class Street(BaseModel):
    id: str
    name: str
    representative_point: Optional[Tuple[float, float]] = None  # (lat, lon)
    bounding_box: Optional[Tuple[float, float, float, float]] = None  # (south, west, north, east)
    geometry: List[List[float]] = Field(default_factory=list)  # [[lon, lat], ...]
    source: StreetSource
    highway: Optional[str] = None


class BuildingSource(str, Enum):
    OVERPASS = "overpass"
    NEARBY_SEARCH = "nearby_search"
    REVERSE_GEOCODE = "reverse_geocode"
    FORWARD_GEOCODE = "forward_geocode"
    INFERRED = "inferred"


class Building(BaseModel):
    id: str
    address: str
    house_number: Optional[int] = Field(default=None, gt=0)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    source: BuildingSource
    confidence: float = Field(ge=0.0, le=1.0)
    synthesized: bool = False
    street: Optional[str] = None
    building_type: Optional[str] = None


# ============================================================
# Persistence artifacts
# ============================================================

class BuildingData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    addresses: List[str]
    coordinates: List[List[float]]  # [[lng, lat], ...]
    total_buildings: int = Field(alias="totalBuildings")
    residential_homes: int = Field(alias="residentialHomes")


class TerritoryDraft(BaseModel):
    name: str
    description: str = ""
    boundary: GeoJSONPolygon
    buildings: List[Building] = Field(default_factory=list)
    zone_type: str = "residential"

    def building_data(self) -> BuildingData:
        return BuildingData(
            addresses=[b.address for b in self.buildings],
            coordinates=[[b.lng, b.lat] for b in self.buildings],
            total_buildings=len(self.buildings),
            residential_homes=len(self.buildings),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize in the shape the territory backend expects"""
        return {
            "name": self.name,
            "description": self.description,
            "boundary": self.boundary.model_dump(),
            "buildingData": self.building_data().model_dump(by_alias=True),
            "zoneType": self.zone_type,
        }


class OverlapResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_overlap: bool = Field(default=False, alias="hasOverlap")
    overlapping_zones: List[Dict[str, Any]] = Field(default_factory=list, alias="overlappingZones")
    duplicate_buildings: List[Any] = Field(default_factory=list, alias="duplicateBuildings")
    is_valid: bool = Field(default=True, alias="isValid")
