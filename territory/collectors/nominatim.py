"""
Nominatim gazetteer client

Free-text place search returning normalised candidates.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from ..errors import ProviderError
from .http_client import ProviderHTTPClient


class NominatimClient(ProviderHTTPClient):
    """Place search against a Nominatim instance"""

    provider = "nominatim"

    def __init__(self, config=None, session=None):
        super().__init__(config, session)
        self.base_url = self.config.api.nominatim_url.rstrip("/")

    def search(self, query: str, limit: int = 10, country_code: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Search for places matching a query

        Returns:
            List of {id, name, full_name, lat, lon, type, class, importance}
        """
        params = {
            "q": query,
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": limit,
        }
        if country_code:
            params["countrycodes"] = country_code

        data = self.request("GET", f"{self.base_url}/search", params=params)
        if not isinstance(data, list):
            raise ProviderError(self.provider, "expected a list of places")

        results = []
        for place in data:
            normalised = self._normalise(place)
            if normalised is not None:
                results.append(normalised)
        logger.debug(f"Nominatim '{query}': {len(results)} places")
        return results

    @staticmethod
    def _normalise(place: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            lat = float(place["lat"])
            lon = float(place["lon"])
        except (KeyError, TypeError, ValueError):
            return None
        full_name = place.get("display_name", "")
        name = place.get("name") or full_name.split(",")[0].strip()
        osm_type = place.get("osm_type", "")
        osm_id = place.get("osm_id")
        place_id = f"{osm_type}/{osm_id}" if osm_id is not None else str(place.get("place_id", ""))
        return {
            "id": place_id,
            "name": name,
            "full_name": full_name,
            "lat": lat,
            "lon": lon,
            "type": place.get("type") or place.get("addresstype", ""),
            "class": place.get("category") or place.get("class", ""),
            "importance": float(place.get("importance") or 0.0),
        }
