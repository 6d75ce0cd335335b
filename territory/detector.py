"""
Building detection along a street

Step 1 derives the community bounding box; nothing else runs without it.
Step 2 queries Overpass for residential buildings in the box and within a
corridor around the street. When that yields nothing, three fallback tiers
run in order:

  (a) nearby-place search around the street, one query per keyword
  (b) reverse geocoding of points sampled along / around the street
  (c) forward geocoding of "{n} {street}" for n in a bounded range

Every external call is charged to the session budget.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .addresses import component, extract_house_number, house_number_from_components
from .boundary import CommunityBoundaryResolver
from .collectors.osm import BuildingProcessor, OSMResponseParser
from .collectors.osm.queries import buildings_query
from .config import PipelineConfig, get_config
from .errors import ApiBudgetExceeded, NoBuildingsDetected, ProviderError
from .geometry import BoundingBox, grid_around, is_valid_coordinate, sample_line
from .models import Building, BuildingSource, GeoNode, Street
from .session import DetectionSession
from .tiers import Tier, TierRun, run_tiers


@dataclass
class StreetContext:
    """Everything a tier needs to search one street"""
    street: Street
    community: GeoNode
    municipality: Optional[GeoNode]
    bbox: BoundingBox
    anchor: Tuple[float, float]  # (lat, lon)
    radius_m: float
    session: DetectionSession
    version: Optional[int] = None

    def charge(self, provider: str) -> None:
        self.session.charge(provider)


def _collect(
    provider: str,
    calls: Iterable[Callable[[], List[Building]]],
    delay_s: float = 0.0,
    sleep: Callable[[float], None] = time.sleep
) -> List[Building]:
    """
    Run a tier's individual calls, tolerating single-call failures

    A failed call is skipped. The tier only fails if nothing was found and at
    least one call failed. Running out of budget ends the tier early.
    """
    found: Dict[str, Building] = {}
    last_error: Optional[ProviderError] = None
    for i, call in enumerate(calls):
        if i and delay_s:
            sleep(delay_s)
        try:
            for building in call():
                found.setdefault(building.id, building)
        except ApiBudgetExceeded as e:
            last_error = e
            break
        except ProviderError as e:
            logger.debug(f"{provider} call failed: {e}")
            last_error = e
    if not found and last_error is not None:
        raise last_error
    return list(found.values())


class OverpassBuildingsTier(Tier[Building]):
    name = "overpass buildings"

    def __init__(self, detector: "BuildingDetector"):
        self.detector = detector

    def fetch(self, ctx: StreetContext) -> List[Building]:
        overpass = self.detector.overpass
        cfg = self.detector.config
        ctx.charge(overpass.provider)
        ql = buildings_query(
            ctx.bbox,
            cfg.detection.building_types,
            ctx.radius_m,
            cfg.api.overpass_timeout,
            corridor=ctx.street.geometry or None,
            point=ctx.anchor,
        )
        elements = OSMResponseParser.parse_elements(overpass.query(ql))
        buildings = BuildingProcessor(cfg).parse_buildings(elements, ctx.street.name)
        return [b for b in buildings if ctx.bbox.contains(b.lat, b.lng)]


class NearbySearchTier(Tier[Building]):
    name = "nearby place search"

    def __init__(self, detector: "BuildingDetector"):
        self.detector = detector

    def fetch(self, ctx: StreetContext) -> List[Building]:
        places = self.detector.places
        cfg = self.detector.config
        confidence = cfg.inference.source_confidence.get(BuildingSource.NEARBY_SEARCH.value, 0.6)

        def search(keyword: str) -> Callable[[], List[Building]]:
            def call() -> List[Building]:
                ctx.charge(places.provider)
                results = places.nearby_search(ctx.anchor[0], ctx.anchor[1], ctx.radius_m, keyword)
                buildings = []
                for place in results:
                    lat, lng = place.get("lat"), place.get("lng")
                    if not is_valid_coordinate(lat, lng) or not ctx.bbox.contains(lat, lng):
                        continue
                    address = place.get("address") or place.get("name") or ""
                    if not address:
                        continue
                    buildings.append(Building(
                        id=f"nearby_{place.get('id') or f'{lat:.6f}_{lng:.6f}'}",
                        address=address,
                        house_number=extract_house_number(address),
                        lat=lat,
                        lng=lng,
                        source=BuildingSource.NEARBY_SEARCH,
                        confidence=confidence,
                        street=ctx.street.name,
                    ))
                return buildings
            return call

        return _collect(
            places.provider,
            (search(k) for k in cfg.detection.nearby_keywords),
            delay_s=cfg.detection.inter_query_delay_s,
            sleep=self.detector.sleep,
        )


def _precise(result: Optional[Dict[str, Any]], precise_types: List[str]) -> bool:
    return bool(result) and bool(set(result.get("types", [])) & set(precise_types))


def _geocoded_building(
    result: Dict[str, Any],
    source: BuildingSource,
    confidence: float,
    fallback_street: str
) -> Building:
    components = result.get("components", [])
    address = result.get("address", "")
    number = house_number_from_components(components) or extract_house_number(address)
    lat, lng = result["lat"], result["lng"]
    return Building(
        id=f"{source.value}_{result.get('id') or f'{lat:.6f}_{lng:.6f}'}",
        address=address,
        house_number=number,
        lat=lat,
        lng=lng,
        source=source,
        confidence=confidence,
        street=component(components, "route") or fallback_street,
    )


class ReverseGeocodeGridTier(Tier[Building]):
    name = "reverse geocoding grid"

    def __init__(self, detector: "BuildingDetector"):
        self.detector = detector

    def samples(self, ctx: StreetContext) -> List[Tuple[float, float]]:
        det = self.detector.config.detection
        if len(ctx.street.geometry) >= 2:
            return sample_line(ctx.street.geometry, det.grid_step_m, det.grid_max_samples)
        return grid_around(ctx.anchor[0], ctx.anchor[1], det.grid_step_m, det.grid_max_samples)

    def fetch(self, ctx: StreetContext) -> List[Building]:
        places = self.detector.places
        cfg = self.detector.config
        confidence = cfg.inference.source_confidence.get(BuildingSource.REVERSE_GEOCODE.value, 0.8)
        precise_types = cfg.detection.precise_address_types

        def lookup(lat: float, lng: float) -> Callable[[], List[Building]]:
            def call() -> List[Building]:
                ctx.charge(places.provider)
                result = places.reverse_geocode(lat, lng)
                if not _precise(result, precise_types):
                    return []
                hit_lat, hit_lng = result.get("lat"), result.get("lng")
                if not is_valid_coordinate(hit_lat, hit_lng) or not ctx.bbox.contains(hit_lat, hit_lng):
                    return []
                return [_geocoded_building(result, BuildingSource.REVERSE_GEOCODE, confidence, ctx.street.name)]
            return call

        return _collect(places.provider, (lookup(lat, lng) for lat, lng in self.samples(ctx)))


class ForwardGeocodeTier(Tier[Building]):
    name = "forward geocoding"

    def __init__(self, detector: "BuildingDetector"):
        self.detector = detector

    def fetch(self, ctx: StreetContext) -> List[Building]:
        places = self.detector.places
        cfg = self.detector.config
        confidence = cfg.inference.source_confidence.get(BuildingSource.FORWARD_GEOCODE.value, 0.7)
        precise_types = cfg.detection.precise_address_types
        low, high = cfg.detection.forward_geocode_range
        locality = ", ".join(n.name for n in (ctx.community, ctx.municipality) if n is not None)

        def lookup(number: int) -> Callable[[], List[Building]]:
            def call() -> List[Building]:
                ctx.charge(places.provider)
                result = places.geocode(f"{number} {ctx.street.name}, {locality}")
                if not _precise(result, precise_types):
                    return []
                # Geocoders snap unknown numbers to the street; only exact hits count
                if house_number_from_components(result.get("components", [])) != number:
                    return []
                hit_lat, hit_lng = result.get("lat"), result.get("lng")
                if not is_valid_coordinate(hit_lat, hit_lng) or not ctx.bbox.contains(hit_lat, hit_lng):
                    return []
                return [_geocoded_building(result, BuildingSource.FORWARD_GEOCODE, confidence, ctx.street.name)]
            return call

        return _collect(places.provider, (lookup(n) for n in range(low, high + 1)))


class BuildingDetector:
    """Finds building / address records along one street"""

    def __init__(
        self,
        overpass: Any,
        places: Any,
        boundary: Optional[CommunityBoundaryResolver] = None,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config or get_config()
        self.overpass = overpass
        self.places = places
        self.boundary = boundary or CommunityBoundaryResolver(overpass, self.config)
        self.sleep = sleep
        self.primary: Tier[Building] = OverpassBuildingsTier(self)
        self.fallbacks: List[Tier[Building]] = [
            NearbySearchTier(self),
            ReverseGeocodeGridTier(self),
            ForwardGeocodeTier(self),
        ]

    @property
    def tiers(self) -> List[Tier[Building]]:
        return [self.primary] + self.fallbacks

    def _anchor(
        self,
        street: Street,
        community: GeoNode,
        municipality: Optional[GeoNode],
        session: DetectionSession
    ) -> Tuple[float, float]:
        """(lat, lon) to search around: street point, geocoded street, or community centre"""
        if street.representative_point:
            return street.representative_point
        locality = ", ".join(n.name for n in (community, municipality) if n is not None)
        try:
            session.charge(self.places.provider)
            result = self.places.geocode(f"{street.name}, {locality}")
        except ProviderError as e:
            logger.warning(f"Could not locate '{street.name}': {e}")
            result = None
        if result and is_valid_coordinate(result.get("lat"), result.get("lng")):
            return result["lat"], result["lng"]
        logger.info(f"Using community centre as search point for '{street.name}'")
        return community.lat, community.lon

    def detect_along(
        self,
        street: Street,
        community: GeoNode,
        session: DetectionSession,
        radius_m: Optional[float] = None,
        municipality: Optional[GeoNode] = None,
        version: Optional[int] = None
    ) -> List[Building]:
        """
        Buildings along a street

        Raises:
            BoundaryUnavailable: Before any building query, if the community has no boundary
            NoBuildingsDetected: If every tier came back empty for this street
        """
        bbox = self.boundary.bounding_box(community, municipality, session)
        anchor = self._anchor(street, community, municipality, session)
        ctx = StreetContext(
            street=street,
            community=community,
            municipality=municipality,
            bbox=bbox,
            anchor=anchor,
            radius_m=radius_m or self.config.detection.search_radius_m,
            session=session,
            version=version,
        )

        def on_attempt(tier_name: str) -> None:
            session.report(f"{street.name}: trying {tier_name}", version)

        run: TierRun[Building] = run_tiers(self.tiers, ctx, on_attempt=on_attempt)
        buildings = run.items

        if not buildings:
            details = "; ".join(o.describe() for o in run.outcomes)
            raise NoBuildingsDetected(
                f"No buildings found along {street.name} ({details})",
                exhausted=run.exhausted(),
            )

        for outcome in run.failures:
            # An empty primary query is the normal trigger for fallbacks
            if outcome.tier == self.primary.name and outcome.error is None:
                continue
            session.add_warning(f"{street.name}: {outcome.describe()}", version)

        session.report(f"{street.name}: found {len(buildings)} buildings via {run.winner}", version)
        return buildings
