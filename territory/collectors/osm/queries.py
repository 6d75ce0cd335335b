"""
Overpass QL query builders

Every builder returns a complete query string ready for OverpassAPIClient.query().
"""

from typing import List, Optional, Sequence, Tuple

from ...geometry import BoundingBox


def escape(value: str) -> str:
    """Escape a value for use inside a double-quoted Overpass string"""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _regex_alternation(values: Sequence[str]) -> str:
    return "|".join(escape(v) for v in values)


def _municipality_area(municipality: str) -> str:
    return f'area["name"="{escape(municipality)}"]["boundary"="administrative"]->.city;'


# Boundary ladder, most specific first. Each rung is (name, selector bodies)
BOUNDARY_LADDER: List[Tuple[str, List[str]]] = [
    ("neighbourhood boundary", [
        'relation["boundary"="neighbourhood"]["name"="{name}"]',
        'way["boundary"="neighbourhood"]["name"="{name}"]',
        'relation["place"="neighbourhood"]["name"="{name}"]',
        'way["place"="neighbourhood"]["name"="{name}"]',
        'node["place"="neighbourhood"]["name"="{name}"]',
    ]),
    ("suburb boundary", [
        'relation["boundary"="suburb"]["name"="{name}"]',
        'relation["place"="suburb"]["name"="{name}"]',
        'way["place"="suburb"]["name"="{name}"]',
        'node["place"="suburb"]["name"="{name}"]',
    ]),
    ("admin boundary", [
        'relation["boundary"="administrative"]["admin_level"~"^(9|10)$"]["name"="{name}"]',
    ]),
    ("named area way", [
        'way["landuse"]["name"="{name}"]',
        'way["area"="yes"]["name"="{name}"]',
        'way["place"]["name"="{name}"]',
    ]),
]


def boundary_query(rung: int, community: str, municipality: Optional[str], timeout: int) -> str:
    """Query one rung of the boundary ladder, scoped to the municipality when known"""
    _, selectors = BOUNDARY_LADDER[rung]
    name = escape(community)
    scope = "(area.city)" if municipality else ""
    body = "\n".join(f"  {sel.format(name=name)}{scope};" for sel in selectors)
    header = _municipality_area(municipality) if municipality else ""
    return f"""
[out:json][timeout:{timeout}];
{header}
(
{body}
);
out geom;
"""


def streets_query(bbox: BoundingBox, highway_types: Sequence[str], timeout: int) -> str:
    """Named residential ways inside a bounding box"""
    highways = _regex_alternation(highway_types)
    return f"""
[out:json][timeout:{timeout}];
(
  way["highway"~"^({highways})$"]["name"]({bbox.to_overpass()});
);
out geom;
"""


def _around_filter(radius_m: float, corridor: Optional[List[List[float]]], point: Optional[Tuple[float, float]]) -> str:
    """(around:R, lat1, lon1, lat2, lon2, ...) along a polyline, else around one point"""
    if corridor and len(corridor) >= 2:
        coords = ",".join(f"{lat:.7f},{lon:.7f}" for lon, lat in corridor)
        return f"(around:{radius_m:.0f},{coords})"
    if point:
        return f"(around:{radius_m:.0f},{point[0]:.7f},{point[1]:.7f})"
    return ""


def buildings_query(
    bbox: BoundingBox,
    building_types: Sequence[str],
    radius_m: float,
    timeout: int,
    corridor: Optional[List[List[float]]] = None,
    point: Optional[Tuple[float, float]] = None
) -> str:
    """
    Residential buildings inside the bounding box and within radius_m of the street

    corridor is the street centreline as [lon, lat] pairs; point is a (lat, lon)
    used when no centreline is known.
    """
    types = _regex_alternation(building_types)
    around = _around_filter(radius_m, corridor, point)
    box = f"({bbox.to_overpass()})"
    return f"""
[out:json][timeout:{timeout}];
(
  way["building"~"^({types})$"]{box}{around};
  relation["building"~"^({types})$"]{box}{around};
  node["building"~"^({types})$"]{box}{around};
);
out geom;
"""
