"""
Overpass API client

Handles communication with Overpass API including:
- Rate limiting (shared "overpass" limiter)
- Retry logic
- Error handling
"""

from typing import Any, Dict

from loguru import logger

from ...errors import ProviderError
from ..http_client import ProviderHTTPClient


class OverpassAPIClient(ProviderHTTPClient):
    """Client for interacting with Overpass API"""

    provider = "overpass"

    def __init__(self, config=None, session=None):
        super().__init__(config, session)
        self.overpass_url = self.config.api.overpass_url
        self.server_timeout = self.config.api.overpass_timeout

    def query(self, query: str) -> Dict[str, Any]:
        """
        Execute Overpass API query with retry logic

        Args:
            query: Overpass QL query string

        Returns:
            JSON response from Overpass API

        Raises:
            ProviderError: If query fails after all retries
        """
        logger.debug(f"Overpass query: {' '.join(query.split())[:200]}")
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        data = self.request("POST", self.overpass_url, headers=headers, data={"data": query})
        if not isinstance(data, dict):
            raise ProviderError(self.provider, "unexpected response shape")
        remark = data.get("remark")
        if remark and "error" in remark.lower():
            # Overpass reports runtime errors (e.g. server-side timeout) in-band
            raise ProviderError(self.provider, remark)
        return data
