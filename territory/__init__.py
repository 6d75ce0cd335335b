"""
Territory Builder

Detects residential buildings along the streets of a community and
synthesizes a territory boundary for them.
"""

from .models import Building, GeoLevel, GeoNode, Street, TerritoryDraft
from .pipeline import DetectionOrchestrator, DetectionResult
from .session import DetectionSession, SessionState

__version__ = "1.0.0"

__all__ = [
    "Building",
    "GeoLevel",
    "GeoNode",
    "Street",
    "TerritoryDraft",
    "DetectionOrchestrator",
    "DetectionResult",
    "DetectionSession",
    "SessionState",
]
