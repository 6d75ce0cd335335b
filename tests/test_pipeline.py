import json

import pytest

from conftest import FakeBackend, FakeGazetteer, FakeOverpass, place, wilson_buildings
from territory.errors import OverlapRejected, ResolutionEmpty, TerritoryError
from territory.models import BuildingSource
from territory.pipeline import DetectionOrchestrator
from territory.session import DetectionSession, SessionState

WILSON_CORRIDOR = "43.7275000,-79.4950000"


def wilson_only(ql):
    """Buildings exist along Wilson Avenue and nowhere else"""
    fake = FakeOverpass()
    kind = fake.kind(ql)
    if kind == "buildings":
        return wilson_buildings() if WILSON_CORRIDOR in ql else {"elements": []}
    return fake.query(ql)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def gazetteer():
    return FakeGazetteer({
        "Ontario, Canada": [place("relation/68841", "Ontario", 50.0, -86.0, "state")],
        "Toronto, Ontario, Canada": [place("relation/324211", "Toronto", 43.65, -79.38, "city")],
        "Downsview, Toronto, Canada": [place("relation/9001", "Downsview", 43.73, -79.485, "neighbourhood")],
    })


def orchestrator_for(config, overpass, places, gazetteer=None, backend=None):
    return DetectionOrchestrator(
        config,
        overpass=overpass,
        places=places,
        gazetteer=gazetteer or FakeGazetteer(),
        backend=backend or FakeBackend(),
    )


def test_resolve_names(config, overpass, places, gazetteer):
    orchestrator = orchestrator_for(config, overpass, places, gazetteer)
    area, municipality, community = orchestrator.resolve_names("Ontario", "Toronto", "Downsview")
    assert (area.name, municipality.name, community.name) == ("Ontario", "Toronto", "Downsview")


def test_resolve_names_empty_level(config, overpass, places, gazetteer):
    orchestrator = orchestrator_for(config, overpass, places, gazetteer)
    with pytest.raises(ResolutionEmpty):
        orchestrator.resolve_names("Ontario", "Atlantis", "Downsview")


def test_partial_success_is_ready_with_inferred_buildings(config, places, ontario, toronto, downsview):
    overpass = FakeOverpass(handler=wilson_only)
    orchestrator = orchestrator_for(config, overpass, places)
    session = DetectionSession()

    result = orchestrator.run(session, ontario, toronto, downsview, street_names=["Wilson Avenue", "Chesswood Drive"])

    assert result.state == SessionState.READY
    assert session.state == SessionState.READY
    numbers = {b.house_number for b in result.draft.buildings}
    assert {12, 16, 20, 24, 28} <= numbers
    assert not numbers & {14, 18}
    observed = [b for b in result.draft.buildings if b.source == BuildingSource.OVERPASS]
    inferred = [b for b in result.draft.buildings if b.synthesized]
    assert len(observed) == 4
    assert 0 < len(inferred) <= 12
    assert any("Chesswood Drive" in w for w in result.warnings)
    assert result.area_m2 > 0
    assert result.density_per_ha > 0
    assert result.draft.name == "Downsview Territory"
    assert session.polygon == result.draft.boundary


def test_every_street_empty_fails(config, overpass, places, ontario, toronto, downsview):
    orchestrator = orchestrator_for(config, overpass, places)
    session = DetectionSession()

    result = orchestrator.run(session, ontario, toronto, downsview, street_names=["Wilson Avenue"])

    assert result.state == SessionState.FAILED
    assert result.error_type == "NoBuildingsDetected"
    assert result.draft is None
    assert session.state == SessionState.FAILED
    assert any("Wilson Avenue" in w for w in result.warnings)


def test_missing_area_fails_without_network(config, overpass, places, toronto, downsview):
    gazetteer = FakeGazetteer()
    orchestrator = orchestrator_for(config, overpass, places, gazetteer)

    result = orchestrator.run(DetectionSession(), None, toronto, downsview, street_names=["Wilson Avenue"])

    assert result.state == SessionState.FAILED
    assert result.error_type == "HierarchyValidationError"
    assert "Area" in result.error_message
    assert overpass.queries == []
    assert places.calls == []
    assert gazetteer.calls == []


def test_missing_boundary_fails(config, places, ontario, toronto, downsview):
    overpass = FakeOverpass(boundary={"elements": []}, buildings=wilson_buildings())
    result = orchestrator_for(config, overpass, places).run(
        DetectionSession(), ontario, toronto, downsview, street_names=["Wilson Avenue"]
    )
    assert result.state == SessionState.FAILED
    assert result.error_type == "BoundaryUnavailable"
    assert overpass.count("buildings") == 0


def test_unmatched_street_name_is_searched_anyway(config, places, ontario, toronto, downsview):
    overpass = FakeOverpass(buildings=wilson_buildings())
    result = orchestrator_for(config, overpass, places).run(
        DetectionSession(), ontario, toronto, downsview, street_names=["Wilson Ave"]
    )
    assert result.state == SessionState.READY
    assert result.streets == ["Wilson Avenue"]

    result = orchestrator_for(config, FakeOverpass(buildings=wilson_buildings()), places).run(
        DetectionSession(), ontario, toronto, downsview, street_names=["Bathurst Street"]
    )
    assert result.streets == ["Bathurst Street"]
    assert any("not among discovered streets" in w for w in result.warnings)


def test_street_change_mid_run_cancels(config, places, ontario, toronto, downsview):
    overpass = FakeOverpass(handler=wilson_only)
    orchestrator = orchestrator_for(config, overpass, places)

    def change_selection(message):
        if message.startswith("Detecting buildings on"):
            session.on_progress = None
            session.select_streets([])

    session = DetectionSession(on_progress=change_selection)
    result = orchestrator.run(session, ontario, toronto, downsview, street_names=["Wilson Avenue"])

    assert result.state == SessionState.CANCELLED
    assert session.buildings == []
    assert session.polygon is None
    assert session.state == SessionState.IDLE


def test_save_creates_zone(config, places, ontario, toronto, downsview, backend):
    overpass = FakeOverpass(handler=wilson_only)
    orchestrator = orchestrator_for(config, overpass, places, backend=backend)
    result = orchestrator.run(DetectionSession(), ontario, toronto, downsview, street_names=["Wilson Avenue"])

    created = orchestrator.save(result)

    assert created["_id"] == "zone-1"
    payload = backend.created[0]
    assert backend.checked == [payload]
    assert payload["boundary"]["type"] == "Polygon"
    assert payload["buildingData"]["totalBuildings"] == len(result.draft.buildings)
    assert payload["zoneType"] == "residential"


def test_save_rejects_overlap(config, places, ontario, toronto, downsview):
    backend = FakeBackend({"hasOverlap": True, "overlappingZones": [{"_id": "z9", "name": "North Block"}], "duplicateBuildings": [], "isValid": False})
    overpass = FakeOverpass(handler=wilson_only)
    orchestrator = orchestrator_for(config, overpass, places, backend=backend)
    result = orchestrator.run(DetectionSession(), ontario, toronto, downsview, street_names=["Wilson Avenue"])

    with pytest.raises(OverlapRejected) as exc:
        orchestrator.save(result)
    assert "North Block" in str(exc.value)
    assert exc.value.overlapping_zones == [{"_id": "z9", "name": "North Block"}]
    assert backend.created == []


def test_failed_result_cannot_be_saved(config, overpass, places, toronto, downsview):
    orchestrator = orchestrator_for(config, overpass, places)
    result = orchestrator.run(DetectionSession(), None, toronto, downsview)
    with pytest.raises(TerritoryError):
        orchestrator.save(result)


def test_write_draft(config, places, ontario, toronto, downsview, tmp_path):
    orchestrator = orchestrator_for(config, FakeOverpass(handler=wilson_only), places)
    result = orchestrator.run(DetectionSession(), ontario, toronto, downsview, street_names=["Wilson Avenue"])

    path = DetectionOrchestrator.write(result, str(tmp_path / "out" / "downsview.json"))

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert data["name"] == "Downsview Territory"
    assert len(data["buildingData"]["coordinates"]) == len(result.draft.buildings)


def test_summary_counts_sources(config, places, ontario, toronto, downsview):
    orchestrator = orchestrator_for(config, FakeOverpass(handler=wilson_only), places)
    result = orchestrator.run(DetectionSession(), ontario, toronto, downsview, street_names=["Wilson Avenue"])
    summary = result.summary()
    assert summary["state"] == "ready"
    assert summary["by_source"]["overpass"] == 4
    assert summary["synthesized"] == summary["by_source"]["inferred"]
