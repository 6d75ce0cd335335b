"""
Detection orchestrator for territory building detection

Sequences one detection session:

  1. Validate the hierarchy (Area, Municipality, Community), no network
  2. Discover streets and match the requested street names
  3. Detect buildings along each selected street, one street at a time
  4. Infer missing buildings from house-number patterns
  5. Deduplicate
  6. Synthesize the boundary polygon, area and density

Data Sources:
  - Nominatim: Area / Municipality / Community resolution
  - OpenStreetMap (Overpass API): Boundaries, streets, buildings
  - Google Maps Platform: Autocomplete, nearby search, geocoding fallbacks
  - Territory backend: Overlap validation and persistence

A street whose tiers all come back empty is a warning; the session only
fails when no street produced a building. Every session write is tied to
the version captured at the start, so a run whose street selection changed
underneath it ends Cancelled without touching the session.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .addresses import slugify
from .boundary import CommunityBoundaryResolver
from .collectors import GooglePlacesClient, NominatimClient, OverpassAPIClient, TerritoryAPIClient
from .config import PipelineConfig, get_config
from .dedup import Deduplicator
from .detector import BuildingDetector
from .errors import (
    BoundaryUnavailable,
    HierarchyValidationError,
    InvalidPolygon,
    NoBuildingsDetected,
    OverlapRejected,
    ResolutionEmpty,
    TerritoryError,
)
from .inference import PatternInferenceEngine
from .models import Building, GeoLevel, GeoNode, Street, StreetSource, TerritoryDraft
from .polygon import PolygonSynthesizer
from .resolver import GeographicResolver
from .session import DetectionSession, SessionState
from .streets import StreetDiscoveryService


@dataclass
class DetectionResult:
    """Outcome of one orchestrator run"""
    state: SessionState
    draft: Optional[TerritoryDraft] = None
    area_m2: float = 0.0
    density_per_ha: float = 0.0
    api_call_count: int = 0
    warnings: List[str] = field(default_factory=list)
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    streets: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == SessionState.READY

    def summary(self) -> Dict[str, Any]:
        buildings = self.draft.buildings if self.draft else []
        by_source: Dict[str, int] = {}
        for b in buildings:
            by_source[b.source.value] = by_source.get(b.source.value, 0) + 1
        return {
            "state": self.state.value,
            "streets": self.streets,
            "buildings": len(buildings),
            "synthesized": sum(1 for b in buildings if b.synthesized),
            "by_source": by_source,
            "area_m2": round(self.area_m2, 1),
            "density_per_ha": round(self.density_per_ha, 2),
            "api_calls": self.api_call_count,
            "warnings": self.warnings,
            "error": {"type": self.error_type, "message": self.error_message} if self.error_type else None,
        }


class DetectionOrchestrator:
    """
    Runs territory detection sessions

    Usage:
        orchestrator = DetectionOrchestrator()
        area, municipality, community = orchestrator.resolve_names("Ontario", "Toronto", "Downsview")
        session = DetectionSession()
        result = orchestrator.run(session, area, municipality, community, street_names=["Wilson Avenue"])
        orchestrator.save(result)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        overpass: Optional[Any] = None,
        places: Optional[Any] = None,
        gazetteer: Optional[Any] = None,
        backend: Optional[Any] = None,
        sleep: Optional[Any] = None
    ):
        self.config = config or get_config()
        self.overpass = overpass or OverpassAPIClient(self.config)
        self.places = places or GooglePlacesClient(self.config)
        self.gazetteer = gazetteer or NominatimClient(self.config)
        self._backend = backend

        self.resolver = GeographicResolver(self.gazetteer, self.config)
        self.boundary = CommunityBoundaryResolver(self.overpass, self.config)
        self.streets = StreetDiscoveryService(self.overpass, self.places, self.boundary, self.config)
        detector_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.detector = BuildingDetector(self.overpass, self.places, self.boundary, self.config, **detector_kwargs)
        self.inference = PatternInferenceEngine(self.config)
        self.deduplicator = Deduplicator()
        self.polygons = PolygonSynthesizer(self.config)

    @property
    def backend(self) -> Any:
        if self._backend is None:
            self._backend = TerritoryAPIClient(self.config)
        return self._backend

    # ============================================================
    # Hierarchy
    # ============================================================

    def resolve_names(
        self,
        area: str,
        municipality: str,
        community: str
    ) -> Tuple[GeoNode, GeoNode, GeoNode]:
        """
        Resolve a hierarchy from names, taking the best candidate per level

        Raises:
            ResolutionEmpty: If a level has no candidates
        """
        nodes: List[GeoNode] = []
        parent = None
        for level, query in ((GeoLevel.AREA, area), (GeoLevel.MUNICIPALITY, municipality), (GeoLevel.COMMUNITY, community)):
            candidates = self.resolver.resolve(level, query, parent)
            if not candidates:
                raise ResolutionEmpty(f"No {level.value} found for '{query}'")
            parent = candidates[0]
            logger.info(f"{level.value.title()}: {parent.full_name}")
            nodes.append(parent)
        return nodes[0], nodes[1], nodes[2]

    @staticmethod
    def validate_hierarchy(
        area: Optional[GeoNode],
        municipality: Optional[GeoNode],
        community: Optional[GeoNode]
    ) -> None:
        missing = [
            label for label, node in (("Area", area), ("Municipality", municipality), ("Community", community))
            if node is None
        ]
        if missing:
            raise HierarchyValidationError(f"Missing selection: {', '.join(missing)}")

    def match_streets(
        self,
        names: List[str],
        community: GeoNode,
        municipality: GeoNode,
        area: Optional[GeoNode] = None
    ) -> Tuple[List[Street], List[str]]:
        """Discovered streets for the requested names, plus warnings for unmatched ones"""
        self.streets.discover(community, municipality, area)
        matched: List[Street] = []
        warnings = []
        for name in names:
            street = self.streets.find(community, name)
            if street is None:
                warnings.append(f"{name}: not among discovered streets of {community.name}, searching by name")
                street = Street(id=f"input_{slugify(name)}", name=name.strip(), source=StreetSource.FALLBACK)
            if all(s.id != street.id for s in matched):
                matched.append(street)
        return matched, warnings

    # ============================================================
    # Detection
    # ============================================================

    def _failed(self, session: DetectionSession, version: int, error: Exception) -> DetectionResult:
        session.set_state(SessionState.FAILED, version)
        logger.error(f"Detection failed: {type(error).__name__}: {error}")
        return DetectionResult(
            state=SessionState.FAILED,
            api_call_count=session.api_call_count,
            warnings=list(session.errors),
            error_type=type(error).__name__,
            error_message=str(error),
            streets=[s.name for s in session.selected_streets],
        )

    @staticmethod
    def _cancelled(version: int) -> DetectionResult:
        logger.info(f"Street selection changed during detection; discarding results of version {version}")
        return DetectionResult(state=SessionState.CANCELLED)

    def run(
        self,
        session: DetectionSession,
        area: Optional[GeoNode],
        municipality: Optional[GeoNode],
        community: Optional[GeoNode],
        street_names: Optional[List[str]] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        zone_type: Optional[str] = None,
        radius_m: Optional[float] = None
    ) -> DetectionResult:
        """
        Run detection for the session's street selection

        Args:
            session: Session to fill; its selected streets are used unless street_names is given
            area, municipality, community: Resolved hierarchy
            street_names: Streets to select before detecting
            name, description, zone_type: TerritoryDraft fields
            radius_m: Corridor radius around each street

        Returns:
            DetectionResult in state READY, FAILED or CANCELLED
        """
        version = session.version
        session.set_state(SessionState.RESOLVING_HIERARCHY, version)
        try:
            self.validate_hierarchy(area, municipality, community)
        except HierarchyValidationError as e:
            return self._failed(session, version, e)

        if street_names is not None:
            session.set_state(SessionState.DISCOVERING_STREETS, version)
            streets, match_warnings = self.match_streets(street_names, community, municipality, area)
            if not session.is_current(version):
                return self._cancelled(version)
            version = session.select_streets(streets)
            for warning in match_warnings:
                session.add_warning(warning, version)

        streets = list(session.selected_streets)
        if not streets:
            return self._failed(session, version, NoBuildingsDetected("No streets selected"))

        # Detecting buildings, one street at a time
        session.set_state(SessionState.DETECTING_BUILDINGS, version)
        per_street: List[Tuple[Street, List[Building]]] = []
        exhausted: List[str] = []
        for i, street in enumerate(streets, 1):
            if not session.is_current(version):
                return self._cancelled(version)
            session.report(f"Detecting buildings on {street.name} ({i}/{len(streets)})", version)
            try:
                found = self.detector.detect_along(
                    street, community, session,
                    radius_m=radius_m, municipality=municipality, version=version
                )
            except BoundaryUnavailable as e:
                return self._failed(session, version, e)
            except NoBuildingsDetected as e:
                session.add_warning(str(e), version)
                exhausted.append(f"{street.name}: {', '.join(e.exhausted)}")
                continue
            if not session.add_buildings(found, version):
                return self._cancelled(version)
            per_street.append((street, found))

        if not per_street:
            return self._failed(session, version, NoBuildingsDetected(
                f"No buildings found on any selected street (exhausted {'; '.join(exhausted)})",
                exhausted=exhausted,
            ))

        # Inferring
        if not session.set_state(SessionState.INFERRING, version):
            return self._cancelled(version)
        synthesized: List[Building] = []
        for street, found in per_street:
            synthesized.extend(self.inference.fill_gaps(found, street.name))

        # Deduplicating
        if not session.set_state(SessionState.DEDUPLICATING, version):
            return self._cancelled(version)
        merged = self.deduplicator.merge([found for _, found in per_street] + [synthesized])

        # Synthesizing
        if not session.set_state(SessionState.SYNTHESIZING, version):
            return self._cancelled(version)
        region = self.polygons.from_ring(self.boundary.bounding_box(community, municipality, session).to_ring())
        within = self.polygons.filter_within(merged, region)
        if len(within) < len(merged):
            logger.info(f"Dropped {len(merged) - len(within)} buildings outside {community.name}")
        try:
            polygon = self.polygons.synthesize(within)
        except InvalidPolygon as e:
            return self._failed(session, version, e)
        area_m2 = self.polygons.area(polygon)
        density = self.polygons.density(len(within), area_m2)

        if not session.replace_buildings(within, version):
            return self._cancelled(version)
        if not session.set_polygon(polygon, area_m2, density, version):
            return self._cancelled(version)

        street_list = ", ".join(s.name for s, _ in per_street)
        draft = TerritoryDraft(
            name=name or f"{community.name} Territory",
            description=description if description is not None else
            f"Residential buildings along {street_list} in {community.name}, {municipality.name}",
            boundary=polygon,
            buildings=within,
            zone_type=zone_type or self.config.default_zone_type,
        )
        session.set_state(SessionState.READY, version)
        session.report(f"Ready: {len(within)} buildings, {area_m2 / 10000:.2f} ha, {density:.1f} per ha", version)

        return DetectionResult(
            state=SessionState.READY,
            draft=draft,
            area_m2=area_m2,
            density_per_ha=density,
            api_call_count=session.api_call_count,
            warnings=list(session.errors),
            streets=[s.name for s in streets],
        )

    # ============================================================
    # Persistence
    # ============================================================

    def save(self, result: DetectionResult) -> Dict[str, Any]:
        """
        Validate overlap with existing zones, then persist the draft

        Raises:
            TerritoryError: If the result is not Ready
            OverlapRejected: If the backend reports an overlap or an invalid draft
            ProviderError: If the backend cannot be reached
        """
        if not result.ok or result.draft is None:
            raise TerritoryError(f"Only a ready detection can be saved (state: {result.state.value})")

        payload = result.draft.to_payload()
        overlap = self.backend.check_overlap(payload)
        if overlap.has_overlap or not overlap.is_valid:
            zones = ", ".join(str(z.get("name", z.get("_id", "?"))) for z in overlap.overlapping_zones)
            message = f"Territory overlaps existing zone(s): {zones}" if overlap.has_overlap else "Territory rejected as invalid"
            raise OverlapRejected(message, overlap.overlapping_zones, overlap.duplicate_buildings)
        if overlap.duplicate_buildings:
            logger.warning(f"{len(overlap.duplicate_buildings)} buildings are already assigned to other territories")

        return self.backend.create_zone(payload)

    @staticmethod
    def write(result: DetectionResult, output_path: str) -> str:
        """Write the TerritoryDraft payload to a JSON file"""
        if result.draft is None:
            raise TerritoryError("No draft to write")
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(result.draft.to_payload(), f, indent=2, ensure_ascii=False)

        logger.info(f"Saved territory draft to {output_path}")
        return output_path
