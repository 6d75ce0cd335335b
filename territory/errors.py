"""
Error taxonomy for the detection pipeline

Provider-level errors (ProviderError and subclasses) are absorbed inside the
component that owns the provider and turned into a fallback. Everything else
is a session-level condition reported by the orchestrator.
"""

from typing import Any, Dict, List, Optional


class TerritoryError(Exception):
    """Base class for all pipeline errors"""


class HierarchyValidationError(TerritoryError):
    """Area or Municipality missing from the selection"""


class ResolutionEmpty(TerritoryError):
    """No hierarchy candidates for a query"""


class ProviderError(TerritoryError):
    """An external provider failed (non-2xx, bad payload, connection error)"""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderTimeout(ProviderError):
    """An external provider did not answer within the configured timeout"""


class ApiBudgetExceeded(ProviderError):
    """The session used up its external call budget"""


class BoundaryUnavailable(TerritoryError):
    """No boundary query returned geometry for a community"""

    def __init__(self, community: str, attempted: Optional[List[str]] = None):
        attempted = attempted or []
        super().__init__(
            f"No boundary geometry for '{community}' "
            f"(tried: {', '.join(attempted) or 'nothing'})"
        )
        self.community = community
        self.attempted = attempted


class NoBuildingsDetected(TerritoryError):
    """Every tier came back empty"""

    def __init__(self, message: str, exhausted: Optional[List[str]] = None):
        super().__init__(message)
        self.exhausted = exhausted or []


class InvalidPolygon(TerritoryError):
    """Ring with fewer than three distinct points"""


class OverlapRejected(TerritoryError):
    """The overlap-validation collaborator refused the draft"""

    def __init__(
        self,
        message: str,
        overlapping_zones: Optional[List[Dict[str, Any]]] = None,
        duplicate_buildings: Optional[List[Any]] = None,
    ):
        super().__init__(message)
        self.overlapping_zones = overlapping_zones or []
        self.duplicate_buildings = duplicate_buildings or []
