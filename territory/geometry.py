"""
Geometry utility functions

Common geometry calculations for bounding boxes, areas and containment.
Coordinates in rings are [lon, lat] pairs (GeoJSON order).
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from pyproj import Geod

from .errors import InvalidPolygon

EARTH_RADIUS_M = 6371000
M_PER_DEG_LAT = 111000

_geod = Geod(ellps="WGS84")


def is_valid_coordinate(lat, lng) -> bool:
    """Reject missing, NaN, out-of-range and (0, 0) null-island coordinates"""
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    if lat == 0 and lng == 0:
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float
) -> float:
    """Calculate distance between two points in meters"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = math.sin(delta_phi/2)**2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_M * c


def meters_to_degrees(meters: float, ref_lat: float) -> Tuple[float, float]:
    """Return (d_lat, d_lon) spanning the given distance at a reference latitude"""
    d_lat = meters / M_PER_DEG_LAT
    cos_lat = max(math.cos(math.radians(ref_lat)), 1e-6)
    d_lon = meters / (M_PER_DEG_LAT * cos_lat)
    return d_lat, d_lon


def offset_point(lat: float, lon: float, north_m: float, east_m: float) -> Tuple[float, float]:
    """Move a point by local metre offsets"""
    d_lat, _ = meters_to_degrees(north_m, lat)
    _, d_lon = meters_to_degrees(east_m, lat)
    return lat + d_lat, lon + d_lon


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lon box"""
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Iterable[Sequence[float]]) -> "BoundingBox":
        """Build from [lon, lat] pairs"""
        points = list(points)
        if not points:
            raise ValueError("Cannot build a bounding box from zero points")
        lons = [p[0] for p in points]
        lats = [p[1] for p in points]
        return cls(south=min(lats), west=min(lons), north=max(lats), east=max(lons))

    @property
    def center(self) -> Tuple[float, float]:
        """(lat, lon) of the box centre"""
        return (self.south + self.north) / 2, (self.west + self.east) / 2

    def pad(self, meters: float) -> "BoundingBox":
        """Grow the box by a fixed distance on every side"""
        d_lat, d_lon = meters_to_degrees(meters, self.center[0])
        return BoundingBox(
            south=max(self.south - d_lat, -90.0),
            west=max(self.west - d_lon, -180.0),
            north=min(self.north + d_lat, 90.0),
            east=min(self.east + d_lon, 180.0),
        )

    def contains(self, lat: float, lon: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lon <= self.east

    def to_overpass(self) -> str:
        """Overpass (south,west,north,east) filter body"""
        return f"{self.south:.7f},{self.west:.7f},{self.north:.7f},{self.east:.7f}"

    def to_ring(self) -> List[List[float]]:
        """Closed 5-point [lon, lat] rectangle, counter-clockwise"""
        return [
            [self.west, self.south],
            [self.east, self.south],
            [self.east, self.north],
            [self.west, self.north],
            [self.west, self.south],
        ]


def close_polygon(coords: List[List[float]]) -> List[List[float]]:
    """
    Ensure polygon is closed (first point == last point)

    Raises InvalidPolygon when the ring has fewer than three distinct points.
    """
    distinct = {(round(c[0], 9), round(c[1], 9)) for c in coords}
    if len(distinct) < 3:
        raise InvalidPolygon(f"Polygon needs at least 3 distinct points, got {len(distinct)}")

    ring = [list(c) for c in coords]
    if ring[0] != ring[-1]:
        ring.append(list(ring[0]))
    return ring


def geodesic_area(ring: List[List[float]]) -> float:
    """Area of a [lon, lat] ring in square meters on the WGS84 ellipsoid"""
    if len(ring) < 4:
        return 0.0
    lons = [c[0] for c in ring]
    lats = [c[1] for c in ring]
    area, _ = _geod.polygon_area_perimeter(lons, lats)
    return abs(area)


def point_in_polygon(
    x: float,
    y: float,
    polygon: List[List[float]]
) -> bool:
    """Point-in-polygon check (ray casting); x = lon, y = lat"""
    n = len(polygon)
    inside = False

    j = n - 1
    for i in range(n):
        xi, yi = polygon[i][0], polygon[i][1]
        xj, yj = polygon[j][0], polygon[j][1]

        if ((yi > y) != (yj > y)) and (x < (xj - xi) * (y - yi) / (yj - yi) + xi):
            inside = not inside
        j = i

    return inside


def grid_around(
    lat: float,
    lon: float,
    step_m: float,
    max_points: int
) -> List[Tuple[float, float]]:
    """
    Square rings of sample points around a centre, nearest ring first

    Returns at most max_points (lat, lon) tuples, centre included.
    """
    points = [(lat, lon)]
    ring = 1
    while len(points) < max_points:
        for dy in range(-ring, ring + 1):
            for dx in range(-ring, ring + 1):
                if max(abs(dx), abs(dy)) != ring:
                    continue
                points.append(offset_point(lat, lon, dy * step_m, dx * step_m))
        ring += 1
    return points[:max_points]


def sample_line(coords: List[List[float]], step_m: float, max_points: int) -> List[Tuple[float, float]]:
    """(lat, lon) samples every step_m along a [lon, lat] polyline"""
    if not coords:
        return []
    samples = [(coords[0][1], coords[0][0])]
    carried = 0.0
    for (lon1, lat1), (lon2, lat2) in zip(coords, coords[1:]):
        seg = haversine_distance(lat1, lon1, lat2, lon2)
        if seg == 0:
            continue
        pos = step_m - carried
        while pos <= seg:
            t = pos / seg
            samples.append((lat1 + (lat2 - lat1) * t, lon1 + (lon2 - lon1) * t))
            pos += step_m
        carried = seg - (pos - step_m)
    if len(samples) > max_points:
        stride = len(samples) / max_points
        samples = [samples[int(i * stride)] for i in range(max_points)]
    return samples
