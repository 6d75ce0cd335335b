"""
Territory backend client

Overlap validation and zone persistence. Responses use the
{success, data, message} envelope.
"""

from typing import Any, Dict

from loguru import logger

from ..errors import ProviderError
from ..models import OverlapResult
from .http_client import ProviderHTTPClient


class TerritoryAPIClient(ProviderHTTPClient):
    """Client for the zones API"""

    provider = "backend"

    def __init__(self, config=None, session=None):
        super().__init__(config, session)
        self.base_url = self.config.api.backend_url.rstrip("/")
        if self.config.api.backend_token:
            self.session.headers.update({"Authorization": f"Bearer {self.config.api.backend_token}"})

    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        envelope = self.request("POST", f"{self.base_url}{path}", json=payload)
        if not isinstance(envelope, dict) or not envelope.get("success"):
            message = envelope.get("message") if isinstance(envelope, dict) else None
            raise ProviderError(self.provider, message or f"{path} failed")
        return envelope.get("data")

    def check_overlap(self, payload: Dict[str, Any]) -> OverlapResult:
        """Ask whether a boundary overlaps existing zones or reuses their buildings"""
        data = self._post("/zones/check-overlap", {
            "boundary": payload["boundary"],
            "buildingData": payload["buildingData"],
        })
        result = OverlapResult.model_validate(data or {})
        logger.info(f"Overlap check: overlap={result.has_overlap}, valid={result.is_valid}, duplicates={len(result.duplicate_buildings)}")
        return result

    def create_zone(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a territory; returns the saved zone"""
        data = self._post("/zones/create-zone", payload)
        logger.info(f"Saved zone '{payload.get('name')}'")
        return data or {}
