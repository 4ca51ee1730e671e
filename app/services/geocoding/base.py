"""
Reverse geocoding contract.

Providers turn coordinates into {address, city, state, provider}. They never
raise: an unreachable service yields empty fields and the issue keeps its
raw coordinates.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class GeocodingProvider(ABC):
    name = "base"

    @abstractmethod
    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        raise NotImplementedError


def empty_result(provider: str) -> Dict[str, Optional[str]]:
    return {
        "address": None,
        "city": None,
        "state": None,
        "provider": provider,
    }


class NoOpProvider(GeocodingProvider):
    """GEOCODING_PROVIDER=none: no network call, empty fields."""

    name = "none"

    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        return empty_result(self.name)
