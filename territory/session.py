"""
Detection session state

One owned, versioned structure per detection. Changing the selected streets
bumps the version and clears every derived field in one place, so stale
buildings or polygons can never outlive the selection they were built for.
"""

import threading
from collections import Counter
from enum import Enum
from typing import Callable, Dict, List, Optional

from loguru import logger

from .errors import ApiBudgetExceeded
from .models import Building, GeoJSONPolygon, Street


class SessionState(str, Enum):
    IDLE = "idle"
    RESOLVING_HIERARCHY = "resolving_hierarchy"
    DISCOVERING_STREETS = "discovering_streets"
    DETECTING_BUILDINGS = "detecting_buildings"
    INFERRING = "inferring"
    DEDUPLICATING = "deduplicating"
    SYNTHESIZING = "synthesizing"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ApiBudget:
    """Thread-safe per-session external call counter"""

    def __init__(self, max_calls: int):
        self.max_calls = max_calls
        self._lock = threading.Lock()
        self._calls: Counter = Counter()

    @property
    def used(self) -> int:
        with self._lock:
            return sum(self._calls.values())

    def by_provider(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._calls)

    def charge(self, provider: str) -> None:
        with self._lock:
            if sum(self._calls.values()) >= self.max_calls:
                raise ApiBudgetExceeded(provider, f"session API budget of {self.max_calls} calls exhausted")
            self._calls[provider] += 1

    def reset(self) -> None:
        with self._lock:
            self._calls.clear()


class DetectionSession:
    """
    Mutable state for one territory detection

    Writes that carry a version are dropped when the version is stale.
    """

    def __init__(self, max_api_calls: int = 400, on_progress: Optional[Callable[[str], None]] = None):
        self._lock = threading.RLock()
        self.budget = ApiBudget(max_api_calls)
        self.on_progress = on_progress
        self.version = 0
        self.selected_streets: List[Street] = []
        self._clear()

    def _clear(self) -> None:
        self.state = SessionState.IDLE
        self.buildings: List[Building] = []
        self.polygon: Optional[GeoJSONPolygon] = None
        self.area_m2 = 0.0
        self.density_per_ha = 0.0
        self.progress_message = ""
        self.errors: List[str] = []
        self.budget.reset()

    @property
    def api_call_count(self) -> int:
        return self.budget.used

    def select_streets(self, streets: List[Street]) -> int:
        """Replace the street selection; everything derived from the old one is dropped"""
        with self._lock:
            self.version += 1
            self.selected_streets = list(streets)
            self._clear()
            logger.debug(f"Session reset to version {self.version} with {len(streets)} streets")
            return self.version

    def reset(self) -> int:
        return self.select_streets([])

    def is_current(self, version: int) -> bool:
        with self._lock:
            return version == self.version

    def charge(self, provider: str) -> None:
        self.budget.charge(provider)

    def report(self, message: str, version: Optional[int] = None) -> None:
        with self._lock:
            if version is not None and version != self.version:
                return
            self.progress_message = message
        logger.info(message)
        if self.on_progress:
            self.on_progress(message)

    def add_warning(self, message: str, version: Optional[int] = None) -> bool:
        with self._lock:
            if version is not None and version != self.version:
                return False
            self.errors.append(message)
        logger.warning(message)
        return True

    def set_state(self, state: SessionState, version: int) -> bool:
        with self._lock:
            if version != self.version:
                return False
            self.state = state
            return True

    def add_buildings(self, buildings: List[Building], version: int) -> bool:
        """Merge buildings found for the selection identified by version"""
        with self._lock:
            if version != self.version:
                logger.info(f"Discarding {len(buildings)} buildings from stale session version {version}")
                return False
            self.buildings.extend(buildings)
            return True

    def replace_buildings(self, buildings: List[Building], version: int) -> bool:
        with self._lock:
            if version != self.version:
                return False
            self.buildings = list(buildings)
            return True

    def set_polygon(self, polygon: GeoJSONPolygon, area_m2: float, density_per_ha: float, version: int) -> bool:
        with self._lock:
            if version != self.version:
                return False
            self.polygon = polygon
            self.area_m2 = area_m2
            self.density_per_ha = density_per_ha
            return True
