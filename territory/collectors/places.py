"""
Google Maps Platform client

Places autocomplete / nearby search and forward / reverse geocoding.
Google answers HTTP 200 with a status field: ZERO_RESULTS is an empty
answer, any other non-OK status is a provider failure.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from ..errors import ProviderError
from .http_client import ProviderHTTPClient


class GooglePlacesClient(ProviderHTTPClient):
    """Places and geocoding provider"""

    provider = "google"

    def __init__(self, config=None, session=None):
        super().__init__(config, session)
        self.base_url = self.config.api.google_maps_url.rstrip("/")
        self.api_key = self.config.api.google_maps_api_key

    def _get(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise ProviderError(self.provider, "GOOGLE_MAPS_API_KEY is not configured")
        data = self.request("GET", f"{self.base_url}/{path}", params={**params, "key": self.api_key})
        status = data.get("status", "UNKNOWN") if isinstance(data, dict) else "UNKNOWN"
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            message = data.get("error_message", "") if isinstance(data, dict) else ""
            raise ProviderError(self.provider, f"{path} status {status} {message}".strip())
        return data.get("predictions") or data.get("results") or []

    def autocomplete(self, text: str, types: Optional[str] = None) -> List[Dict[str, str]]:
        """Autocomplete predictions as [{id, description}]"""
        params: Dict[str, Any] = {"input": text}
        if types:
            params["types"] = types
        predictions = self._get("place/autocomplete/json", params)
        return [
            {"id": p.get("place_id", ""), "description": p.get("description", "")}
            for p in predictions
        ]

    def nearby_search(self, lat: float, lng: float, radius_m: float, keyword: str) -> List[Dict[str, Any]]:
        """Places around a point as [{id, name, address, lat, lng, types}]"""
        params = {
            "location": f"{lat},{lng}",
            "radius": int(radius_m),
            "keyword": keyword,
        }
        results = []
        for place in self._get("place/nearbysearch/json", params):
            location = place.get("geometry", {}).get("location", {})
            if "lat" not in location or "lng" not in location:
                continue
            results.append({
                "id": place.get("place_id", ""),
                "name": place.get("name", ""),
                "address": place.get("vicinity") or place.get("formatted_address", ""),
                "lat": location["lat"],
                "lng": location["lng"],
                "types": place.get("types", []),
            })
        logger.debug(f"Nearby '{keyword}' at ({lat:.5f}, {lng:.5f}): {len(results)} places")
        return results

    @staticmethod
    def _geocode_result(result: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        location = result.get("geometry", {}).get("location", {})
        if "lat" not in location or "lng" not in location:
            return None
        return {
            "id": result.get("place_id", ""),
            "address": result.get("formatted_address", ""),
            "lat": location["lat"],
            "lng": location["lng"],
            "components": result.get("address_components", []),
            "types": result.get("types", []),
            "location_type": result.get("geometry", {}).get("location_type", ""),
        }

    def geocode(self, address: str) -> Optional[Dict[str, Any]]:
        """Best match for an address, or None"""
        for result in self._get("geocode/json", {"address": address}):
            parsed = self._geocode_result(result)
            if parsed is not None:
                return parsed
        return None

    def reverse_geocode(self, lat: float, lng: float) -> Optional[Dict[str, Any]]:
        """Most precise address at a point, or None"""
        for result in self._get("geocode/json", {"latlng": f"{lat},{lng}"}):
            parsed = self._geocode_result(result)
            if parsed is not None:
                return parsed
        return None
