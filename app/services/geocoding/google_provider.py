import logging
from typing import Any, Dict, List, Optional

import requests

from app.core.settings import settings
from .base import GeocodingProvider, empty_result

logger = logging.getLogger(__name__)


def _component(components: List[Dict], types: List[str]) -> Optional[str]:
    for component in components:
        if any(t in component.get("types", []) for t in types):
            return component.get("long_name")
    return None


class GoogleMapsProvider(GeocodingProvider):
    """Google Maps Geocoding API; used when GEOCODING_PROVIDER=google and a key is set."""

    name = "google"
    BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: Optional[str]):
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is required for the google geocoding provider")
        self.api_key = api_key

    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        try:
            resp = requests.get(
                self.BASE_URL,
                params={"latlng": f"{latitude},{longitude}", "key": self.api_key},
                timeout=settings.GEOCODING_TIMEOUT_SECONDS,
            )
            if resp.status_code != 200:
                logger.warning(f"Google Maps reverse-geocode failed with status {resp.status_code}")
                return empty_result(self.name)

            data: Dict[str, Any] = resp.json()
            results = data.get("results") or []
            if not results:
                return empty_result(self.name)

            first = results[0]
            components = first.get("address_components") or []
            return {
                "address": first.get("formatted_address"),
                "city": _component(components, ["locality", "postal_town"]),
                "state": _component(components, ["administrative_area_level_1"]),
                "provider": self.name,
            }
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Google Maps reverse-geocode error: {e}")
            return empty_result(self.name)
