import pytest

from conftest import FakeOverpass
from territory.errors import ProviderError
from territory.models import GeoLevel, GeoNode, StreetSource
from territory.streets import StreetDiscoveryService, looks_encoded


@pytest.fixture
def service(config, overpass, places):
    return StreetDiscoveryService(overpass, places, config=config)


def test_overpass_tier_lists_residential_streets(service, downsview, toronto, overpass, places):
    streets = service.discover(downsview, toronto)
    names = [s.name for s in streets]

    assert names == ["Chesswood Drive", "Wilson Avenue"]
    assert all(s.source == StreetSource.OVERPASS for s in streets)
    assert places.calls == []


def test_split_ways_grouped_into_one_street(service, downsview, toronto):
    wilson = next(s for s in service.discover(downsview, toronto) if s.name == "Wilson Avenue")
    south, west, north, east = wilson.bounding_box
    assert west == pytest.approx(-79.495)
    assert east == pytest.approx(-79.472)


def test_results_cached_per_community(service, downsview, toronto, overpass):
    service.discover(downsview, toronto)
    queries = len(overpass.queries)
    service.discover(downsview, toronto)
    assert len(overpass.queries) == queries


def test_places_fallback_drops_encoded_predictions(config, downsview, toronto, places):
    overpass = FakeOverpass(streets={"elements": []})
    places.autocomplete_results = [
        {"id": "p1", "description": "Wilson Avenue, Toronto, ON, Canada"},
        {"id": "p2", "description": "EiFSAWRIYXUgV2lsc29uLCBUb3JvbnRv"},
        {"id": "p3", "description": "Keele Street, Toronto, ON, Canada"},
        {"id": "p4", "description": "Wilson Avenue, North York, ON, Canada"},
    ]
    service = StreetDiscoveryService(overpass, places, config=config)
    streets = service.discover(downsview, toronto)

    assert [s.name for s in streets] == ["Wilson Avenue", "Keele Street"]
    assert all(s.source == StreetSource.PLACES for s in streets)
    assert places.calls == [("autocomplete", "Downsview Toronto streets")]


def test_known_list_when_providers_fail(config, downsview, toronto, places):
    overpass = FakeOverpass(boundary={"elements": []})
    places.errors["autocomplete"] = ProviderError("google", "HTTP 500")
    service = StreetDiscoveryService(overpass, places, config=config)
    streets = service.discover(downsview, toronto)

    assert "Wilson Avenue" in [s.name for s in streets]
    assert all(s.source == StreetSource.FALLBACK for s in streets)


def test_unknown_community_with_nothing_found_is_empty(config, toronto, places):
    nowhere = GeoNode(id="node/1", name="Nowhere", full_name="Nowhere", lat=43.0, lon=-79.0, level=GeoLevel.COMMUNITY, source_type="hamlet")
    overpass = FakeOverpass(boundary={"elements": []})
    service = StreetDiscoveryService(overpass, places, config=config)
    assert service.discover(nowhere, toronto) == []


def test_filter_and_find(service, downsview, toronto):
    service.discover(downsview, toronto)
    assert [s.name for s in service.filter(downsview, "wIL")] == ["Wilson Avenue"]
    assert len(service.filter(downsview, "")) == 2
    assert service.find(downsview, "wilson ave").name == "Wilson Avenue"
    assert service.find(downsview, "Keele Street") is None


def test_filter_discovers_when_not_cached(service, downsview, toronto):
    assert service.filter(downsview, "ches") == []
    assert [s.name for s in service.filter(downsview, "ches", toronto)] == ["Chesswood Drive"]


def test_invalidate_forgets_streets_and_boundary(service, downsview, toronto, overpass):
    service.discover(downsview, toronto)
    service.invalidate(downsview.id)
    before = overpass.count("boundary")
    service.discover(downsview, toronto)
    assert overpass.count("boundary") > before


@pytest.mark.parametrize("text, expected", [
    ("Wilson Avenue, Toronto, ON, Canada", False),
    ("EiFSAWRIYXUgV2lsc29u", True),
    ("ChIJpTvG15DL1IkRd8S0KlBVNTI", True),
    ("", True),
    ("Queen Street East, Brampton", False),
])
def test_looks_encoded(text, expected):
    assert looks_encoded(text) is expected
