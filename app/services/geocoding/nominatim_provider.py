import logging
from typing import Any, Dict, Optional

import requests

from app.core.settings import settings
from .base import GeocodingProvider, empty_result

logger = logging.getLogger(__name__)


class NominatimProvider(GeocodingProvider):
    """
    OpenStreetMap Nominatim reverse geocoding (no API key).

    Sends the User-Agent header the Nominatim usage policy asks for.
    """

    name = "nominatim"
    BASE_URL = "https://nominatim.openstreetmap.org/reverse"

    def __init__(self, user_agent: str = "civicfix-issue-service/0.2"):
        self.user_agent = user_agent

    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        try:
            resp = requests.get(
                self.BASE_URL,
                params={"lat": latitude, "lon": longitude, "format": "json", "addressdetails": 1},
                headers={"User-Agent": self.user_agent},
                timeout=settings.GEOCODING_TIMEOUT_SECONDS,
            )
            if resp.status_code != 200:
                logger.warning(f"Nominatim reverse-geocode failed with status {resp.status_code}")
                return empty_result(self.name)

            data: Dict[str, Any] = resp.json()
            parts = data.get("address") or {}
            return {
                "address": data.get("display_name"),
                "city": parts.get("city") or parts.get("town") or parts.get("village"),
                "state": parts.get("state"),
                "provider": self.name,
            }
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Nominatim reverse-geocode error: {e}")
            return empty_result(self.name)
