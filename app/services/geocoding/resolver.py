import logging
from typing import Dict, Optional

from app.core.settings import settings
from .base import GeocodingProvider, NoOpProvider
from .google_provider import GoogleMapsProvider
from .nominatim_provider import NominatimProvider

logger = logging.getLogger(__name__)

_provider_instance: Optional[GeocodingProvider] = None


def get_geocoding_provider() -> GeocodingProvider:
    """
    Resolve the active geocoding provider from GEOCODING_PROVIDER.

    "google" needs GOOGLE_MAPS_API_KEY and falls back to Nominatim without it;
    "none" disables lookups.
    """
    global _provider_instance
    if _provider_instance is not None:
        return _provider_instance

    provider_name = (settings.GEOCODING_PROVIDER or "nominatim").lower()

    if provider_name == "none":
        _provider_instance = NoOpProvider()
    elif provider_name == "google":
        try:
            _provider_instance = GoogleMapsProvider(api_key=settings.GOOGLE_MAPS_API_KEY)
        except ValueError as e:
            logger.warning(f"{e}. Falling back to Nominatim.")
            _provider_instance = NominatimProvider()
    else:
        _provider_instance = NominatimProvider()

    logger.info(f"Geocoding provider initialized: {_provider_instance.name}")
    return _provider_instance


def reset_geocoding_provider() -> None:
    global _provider_instance
    _provider_instance = None


def reverse_geocode(latitude: float, longitude: float) -> Dict[str, Optional[str]]:
    """Address fields for a point; empty fields when unavailable."""
    return get_geocoding_provider().reverse_geocode(latitude, longitude)
