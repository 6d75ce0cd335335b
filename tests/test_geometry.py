import pytest

from territory.errors import InvalidPolygon
from territory.geometry import (
    BoundingBox,
    close_polygon,
    geodesic_area,
    grid_around,
    haversine_distance,
    is_valid_coordinate,
    point_in_polygon,
    sample_line,
)


@pytest.mark.parametrize("lat, lng, expected", [
    (43.7, -79.4, True),
    (90, 180, True),
    (0, 0, False),
    (91, 0, False),
    (0, -181, False),
    (float("nan"), 10, False),
    (None, 10, False),
    ("43.7", "-79.4", True),
])
def test_is_valid_coordinate(lat, lng, expected):
    assert is_valid_coordinate(lat, lng) is expected


def test_haversine_one_degree_latitude():
    assert haversine_distance(0, 0, 1, 0) == pytest.approx(111_195, rel=1e-3)


def test_bbox_pad_grows_every_side():
    box = BoundingBox(43.72, -79.50, 43.74, -79.47)
    padded = box.pad(1000)
    assert padded.south < box.south and padded.north > box.north
    assert padded.west < box.west and padded.east > box.east
    assert (box.south - padded.south) == pytest.approx(1000 / 111000)


def test_bbox_from_points_and_contains():
    box = BoundingBox.from_points([[-79.5, 43.72], [-79.47, 43.74]])
    assert box.contains(43.73, -79.48)
    assert not box.contains(43.75, -79.48)


def test_bbox_ring_is_closed():
    ring = BoundingBox(0, 0, 1, 1).to_ring()
    assert len(ring) == 5
    assert ring[0] == ring[-1]


def test_close_polygon():
    assert close_polygon([[0, 0], [1, 0], [1, 1]])[-1] == [0, 0]
    closed = [[0, 0], [1, 0], [1, 1], [0, 0]]
    assert close_polygon(closed) == closed


def test_close_polygon_rejects_two_points():
    with pytest.raises(InvalidPolygon):
        close_polygon([[0, 0], [1, 1]])


def test_geodesic_area_equator_square():
    ring = BoundingBox(0, 0, 0.01, 0.01).to_ring()
    assert geodesic_area(ring) == pytest.approx(1.2309e6, rel=0.01)


def test_geodesic_area_orientation_independent():
    ring = BoundingBox(43.7, -79.5, 43.71, -79.49).to_ring()
    assert geodesic_area(ring) == pytest.approx(geodesic_area(list(reversed(ring))))
    assert geodesic_area(ring) > 0


def test_point_in_polygon():
    ring = BoundingBox(0, 0, 1, 1).to_ring()
    assert point_in_polygon(0.5, 0.5, ring)
    assert not point_in_polygon(1.5, 0.5, ring)


def test_grid_around_starts_at_centre():
    points = grid_around(43.73, -79.48, 40, 9)
    assert len(points) == 9
    assert points[0] == (43.73, -79.48)
    assert len(set(points)) == 9


def test_sample_line_spacing():
    # ~1.1 km due north
    coords = [[-79.48, 43.72], [-79.48, 43.73]]
    samples = sample_line(coords, 100, 100)
    assert samples[0] == (43.72, -79.48)
    assert 11 <= len(samples) <= 12
    step = haversine_distance(samples[0][0], samples[0][1], samples[1][0], samples[1][1])
    assert step == pytest.approx(100, rel=0.01)


def test_sample_line_respects_cap():
    coords = [[-79.48, 43.72], [-79.48, 43.73]]
    assert len(sample_line(coords, 10, 5)) == 5
