import pytest

from territory.errors import InvalidPolygon
from territory.models import Building, BuildingSource
from territory.polygon import PolygonSynthesizer


def make(n, lat, lng):
    return Building(id=f"b{n}", address=f"{n} Wilson Avenue", house_number=n, lat=lat, lng=lng, source=BuildingSource.OVERPASS, confidence=0.9)


@pytest.fixture
def synthesizer(config):
    return PolygonSynthesizer(config)


@pytest.fixture
def buildings():
    return [make(12, 43.7275, -79.490), make(16, 43.7280, -79.488), make(20, 43.7270, -79.486)]


def test_ring_is_closed_rectangle(synthesizer, buildings):
    polygon = synthesizer.synthesize(buildings)
    ring = polygon.coordinates[0]
    assert polygon.type == "Polygon"
    assert len(ring) == 5
    assert ring[0] == ring[-1]


def test_ring_is_padded_around_buildings(synthesizer, buildings):
    ring = synthesizer.synthesize(buildings).ring
    lngs = [c[0] for c in ring]
    lats = [c[1] for c in ring]
    assert min(lats) < 43.7270 and max(lats) > 43.7280
    assert min(lngs) < -79.490 and max(lngs) > -79.486
    for b in buildings:
        assert synthesizer.contains(b.lat, b.lng, synthesizer.synthesize(buildings))


def test_area_is_positive_and_plausible(synthesizer, buildings):
    polygon = synthesizer.synthesize(buildings)
    area = synthesizer.area(polygon)
    # ~0.1 km x ~0.16 km of buildings plus 100 m padding on each side
    assert 80_000 < area < 200_000


def test_single_building_gets_padded_box(synthesizer):
    polygon = synthesizer.synthesize([make(1, 43.73, -79.48)])
    assert synthesizer.area(polygon) > 0


def test_density_guards_zero_area():
    assert PolygonSynthesizer.density(10, 0.0) == 0.0
    assert PolygonSynthesizer.density(10, 20_000.0) == pytest.approx(5.0)


def test_no_buildings_is_invalid(synthesizer):
    with pytest.raises(InvalidPolygon):
        synthesizer.synthesize([])


def test_from_ring_closes_open_ring():
    polygon = PolygonSynthesizer.from_ring([[0, 0], [1, 0], [1, 1]])
    assert polygon.ring[0] == polygon.ring[-1]
    assert len(polygon.ring) == 4


def test_degenerate_ring_rejected():
    with pytest.raises(InvalidPolygon):
        PolygonSynthesizer.from_ring([[0, 0], [1, 1], [0, 0]])


def test_filter_within(synthesizer, buildings):
    polygon = synthesizer.synthesize(buildings)
    outside = make(99, 44.0, -80.0)
    kept = synthesizer.filter_within(buildings + [outside], polygon)
    assert outside not in kept
    assert len(kept) == 3
