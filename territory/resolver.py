"""
Geographic hierarchy resolution

Resolves Area / Municipality / Community names against the gazetteer by
trying query reformulations in order, keeping candidates whose place type
fits the level (or that the gazetteer rates as important), and caching the
answers per (level, parent, query).
"""

import threading
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .config import PipelineConfig, get_config
from .models import GeoLevel, GeoNode
from .tiers import Tier, run_tiers

CacheKey = Tuple[GeoLevel, Optional[str], str]


def normalize_query(query: str) -> str:
    return " ".join(query.lower().split())


class ReformulationTier(Tier[GeoNode]):
    """One phrasing of the query sent to the gazetteer"""

    def __init__(self, resolver: "GeographicResolver", text: str):
        self.resolver = resolver
        self.text = text
        self.name = f"gazetteer '{text}'"

    def fetch(self, level: GeoLevel) -> List[GeoNode]:
        cfg = self.resolver.config.resolver
        places = self.resolver.gazetteer.search(
            self.text,
            limit=cfg.result_caps.get(level.value, 10),
            country_code=cfg.country_code,
        )
        return [
            self.resolver.to_node(place, level)
            for place in places
            if self.resolver.accepts(place, level)
        ]


class GeographicResolver:
    """Cascading place-name resolver with per-parent caching"""

    def __init__(self, gazetteer: Any, config: Optional[PipelineConfig] = None):
        self.gazetteer = gazetteer
        self.config = config or get_config()
        self._cache: Dict[CacheKey, List[GeoNode]] = {}
        self._lock = threading.Lock()

    def reformulations(self, query: str, parent: Optional[GeoNode] = None) -> List[str]:
        """Query phrasings, most specific first"""
        country = self.config.resolver.country
        variants = []
        if parent is not None:
            variants.append(f"{query}, {parent.name}, {country}")
        variants.append(f"{query}, {country}")
        variants.append(query)
        # Keep order, drop repeats
        return list(dict.fromkeys(variants))

    def accepts(self, place: Dict[str, Any], level: GeoLevel) -> bool:
        cfg = self.config.resolver
        allowed = cfg.allowed_types.get(level.value, [])
        if place.get("type") in allowed:
            return True
        return float(place.get("importance") or 0.0) > cfg.importance_threshold

    @staticmethod
    def to_node(place: Dict[str, Any], level: GeoLevel) -> GeoNode:
        return GeoNode(
            id=str(place["id"]),
            name=place.get("name") or place.get("full_name", ""),
            full_name=place.get("full_name") or place.get("name", ""),
            lat=float(place["lat"]),
            lon=float(place["lon"]),
            level=level,
            source_type=place.get("type", ""),
        )

    def resolve(self, level: GeoLevel, query: str, parent: Optional[GeoNode] = None) -> List[GeoNode]:
        """
        Resolve a place name at a hierarchy level

        Args:
            level: Hierarchy level being searched
            query: User input; shorter than the minimum length returns []
            parent: Selected node one level up, if any

        Returns:
            Accepted candidates, de-duplicated by id and capped per level.
            An empty list means no reformulation produced a candidate.
        """
        query = (query or "").strip()
        if len(query) < self.config.resolver.min_query_length:
            return []

        key = (level, parent.id if parent else None, normalize_query(query))
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Resolver cache hit for {level.value} '{query}'")
            return list(cached)

        tiers = [ReformulationTier(self, text) for text in self.reformulations(query, parent)]
        run = run_tiers(tiers, level)

        seen = set()
        nodes = []
        for node in run.items:
            if node.id in seen:
                continue
            seen.add(node.id)
            nodes.append(node)
        nodes = nodes[:self.config.resolver.result_caps.get(level.value, 10)]

        if not nodes:
            # Not cached, so a retry goes back to the gazetteer
            logger.info(f"No {level.value} results for '{query}' after {len(run.outcomes)} reformulations")
            return []

        logger.info(f"Resolved {level.value} '{query}' via {run.winner}: {len(nodes)} candidates")
        with self._lock:
            self._cache[key] = nodes
        return list(nodes)

    def invalidate_below(self, level: GeoLevel) -> None:
        """Drop cached results for every level deeper than the given one"""
        with self._lock:
            stale = [k for k in self._cache if k[0].depth > level.depth]
            for key in stale:
                del self._cache[key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} resolver cache entries below {level.value}")

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
