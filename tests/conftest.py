"""
Shared fixtures: in-memory providers and a zero-delay configuration.
No test touches the network.
"""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from territory.collectors import rate_limit
from territory.config import PipelineConfig
from territory.models import GeoLevel, GeoNode, OverlapResult


# ============================================================
# Downsview fixture data
# ============================================================

WILSON_LAT = 43.7275

# Closed way roughly covering Downsview
BOUNDARY_RESPONSE = {
    "elements": [{
        "type": "relation",
        "id": 9001,
        "tags": {"boundary": "neighbourhood", "name": "Downsview"},
        "members": [{
            "type": "way",
            "geometry": [
                {"lat": 43.720, "lon": -79.500},
                {"lat": 43.720, "lon": -79.470},
                {"lat": 43.740, "lon": -79.470},
                {"lat": 43.740, "lon": -79.500},
                {"lat": 43.720, "lon": -79.500},
            ],
        }],
    }]
}

STREETS_RESPONSE = {
    "elements": [
        {
            "type": "way",
            "id": 501,
            "tags": {"highway": "residential", "name": "Wilson Avenue"},
            "geometry": [{"lat": WILSON_LAT, "lon": -79.495}, {"lat": WILSON_LAT, "lon": -79.475}],
        },
        {
            "type": "way",
            "id": 502,
            "tags": {"highway": "residential", "name": "Wilson Avenue"},
            "geometry": [{"lat": WILSON_LAT, "lon": -79.475}, {"lat": WILSON_LAT, "lon": -79.472}],
        },
        {
            "type": "way",
            "id": 503,
            "tags": {"highway": "living_street", "name": "Chesswood Drive"},
            "geometry": [{"lat": 43.730, "lon": -79.480}, {"lat": 43.735, "lon": -79.480}],
        },
        {
            "type": "way",
            "id": 504,
            "tags": {"highway": "primary", "name": "Keele Street"},
            "geometry": [{"lat": 43.720, "lon": -79.485}, {"lat": 43.740, "lon": -79.485}],
        },
    ]
}


def footprint(lat: float, lon: float, size: float = 0.0001) -> List[Dict[str, float]]:
    return [
        {"lat": lat, "lon": lon},
        {"lat": lat, "lon": lon + size},
        {"lat": lat + size, "lon": lon + size},
        {"lat": lat + size, "lon": lon},
        {"lat": lat, "lon": lon},
    ]


def wilson_buildings(numbers=(12, 16, 20, 28)) -> Dict[str, Any]:
    elements = []
    for i, n in enumerate(numbers):
        elements.append({
            "type": "way",
            "id": 7000 + n,
            "tags": {"building": "house", "addr:housenumber": str(n), "addr:street": "Wilson Avenue"},
            "geometry": footprint(WILSON_LAT + 0.0002, -79.490 + n * 0.0001),
        })
    return {"elements": elements}


# ============================================================
# Fake providers
# ============================================================

class FakeOverpass:
    """Routes Overpass QL to canned responses by what the query asks for"""

    provider = "overpass"

    def __init__(
        self,
        boundary: Optional[Dict[str, Any]] = None,
        streets: Optional[Dict[str, Any]] = None,
        buildings: Optional[Dict[str, Any]] = None,
        handler: Optional[Callable[[str], Dict[str, Any]]] = None
    ):
        self.boundary = boundary if boundary is not None else BOUNDARY_RESPONSE
        self.streets = streets if streets is not None else STREETS_RESPONSE
        self.buildings = buildings if buildings is not None else {"elements": []}
        self.handler = handler
        self.queries: List[str] = []

    @staticmethod
    def kind(ql: str) -> str:
        if '["building"' in ql:
            return "buildings"
        if '["highway"' in ql:
            return "streets"
        return "boundary"

    def query(self, ql: str) -> Dict[str, Any]:
        self.queries.append(ql)
        if self.handler is not None:
            return self.handler(ql)
        kind = self.kind(ql)
        if kind == "boundary":
            return self.boundary if '"boundary"="neighbourhood"' in ql else {"elements": []}
        return getattr(self, kind)

    def count(self, kind: str) -> int:
        return sum(1 for q in self.queries if self.kind(q) == kind)


class FakePlaces:
    """Google Places stand-in; every method records its calls"""

    provider = "google"

    def __init__(self):
        self.autocomplete_results: List[Dict[str, str]] = []
        self.nearby_results: Dict[str, List[Dict[str, Any]]] = {}
        self.reverse_results: List[Optional[Dict[str, Any]]] = []
        self.geocode_handler: Callable[[str], Optional[Dict[str, Any]]] = lambda address: None
        self.errors: Dict[str, Exception] = {}
        self.calls: List[tuple] = []

    def _maybe_fail(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]

    def autocomplete(self, text, types=None):
        self.calls.append(("autocomplete", text))
        self._maybe_fail("autocomplete")
        return list(self.autocomplete_results)

    def nearby_search(self, lat, lng, radius_m, keyword):
        self.calls.append(("nearby_search", keyword))
        self._maybe_fail("nearby_search")
        return list(self.nearby_results.get(keyword, []))

    def reverse_geocode(self, lat, lng):
        index = sum(1 for c in self.calls if c[0] == "reverse_geocode")
        self.calls.append(("reverse_geocode", (lat, lng)))
        self._maybe_fail("reverse_geocode")
        if index < len(self.reverse_results):
            return self.reverse_results[index]
        return None

    def geocode(self, address):
        self.calls.append(("geocode", address))
        self._maybe_fail("geocode")
        return self.geocode_handler(address)

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c[0] == method)


class FakeGazetteer:
    """Nominatim stand-in keyed by exact query text"""

    provider = "nominatim"

    def __init__(self, answers: Optional[Dict[str, Any]] = None):
        self.answers = answers or {}
        self.calls: List[str] = []

    def search(self, query, limit=10, country_code=None):
        self.calls.append(query)
        answer = self.answers.get(query, [])
        if isinstance(answer, Exception):
            raise answer
        return list(answer)[:limit]


class FakeBackend:
    provider = "backend"

    def __init__(self, overlap: Optional[Dict[str, Any]] = None):
        self.overlap = overlap or {"hasOverlap": False, "overlappingZones": [], "duplicateBuildings": [], "isValid": True}
        self.checked: List[Dict[str, Any]] = []
        self.created: List[Dict[str, Any]] = []

    def check_overlap(self, payload):
        self.checked.append(payload)
        return OverlapResult.model_validate(self.overlap)

    def create_zone(self, payload):
        self.created.append(payload)
        return {"_id": "zone-1", "name": payload["name"]}


def place(id: str, name: str, lat: float, lon: float, type: str, importance: float = 0.3, full_name: str = "") -> Dict[str, Any]:
    return {
        "id": id,
        "name": name,
        "full_name": full_name or name,
        "lat": lat,
        "lon": lon,
        "type": type,
        "class": "place",
        "importance": importance,
    }


def reverse_hit(number: int, street: str = "Wilson Avenue", lat: float = WILSON_LAT, lng: float = -79.49) -> Dict[str, Any]:
    return {
        "id": f"rev-{number}",
        "address": f"{number} {street}, Toronto, ON, Canada",
        "lat": lat,
        "lng": lng,
        "components": [
            {"long_name": str(number), "short_name": str(number), "types": ["street_number"]},
            {"long_name": street, "short_name": street, "types": ["route"]},
        ],
        "types": ["street_address"],
        "location_type": "ROOFTOP",
    }


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture(autouse=True)
def fresh_rate_limiters():
    """Limiters are process-wide; start every test from an empty registry"""
    rate_limit._registry.clear()
    yield
    rate_limit._registry.clear()


@pytest.fixture
def config():
    cfg = PipelineConfig()
    cfg.detection.inter_query_delay_s = 0.0
    cfg.api.retry_delay = 0.0
    cfg.rate_limits.overpass = 0.0
    cfg.rate_limits.nominatim = 0.0
    cfg.rate_limits.google = 0.0
    return cfg


@pytest.fixture
def ontario():
    return GeoNode(id="relation/68841", name="Ontario", full_name="Ontario, Canada", lat=50.0, lon=-86.0, level=GeoLevel.AREA, source_type="state")


@pytest.fixture
def toronto():
    return GeoNode(id="relation/324211", name="Toronto", full_name="Toronto, Ontario, Canada", lat=43.65, lon=-79.38, level=GeoLevel.MUNICIPALITY, source_type="city")


@pytest.fixture
def downsview():
    return GeoNode(id="relation/9001", name="Downsview", full_name="Downsview, Toronto, Ontario, Canada", lat=43.73, lon=-79.485, level=GeoLevel.COMMUNITY, source_type="neighbourhood")


@pytest.fixture
def overpass():
    return FakeOverpass()


@pytest.fixture
def places():
    return FakePlaces()
