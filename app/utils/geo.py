"""
Geographic helpers for the live feed.
"""

import math
from typing import Tuple

EARTH_RADIUS_METERS = 6371000
METERS_PER_DEGREE_LAT = 111320.0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def latitude_bounds(lat: float, radius_meters: float) -> Tuple[float, float]:
    """
    Latitude band that contains every point within radius_meters of lat.

    Used to narrow the Firestore query; longitude is left to the exact
    distance check.
    """
    delta = radius_meters / METERS_PER_DEGREE_LAT
    return max(-90.0, lat - delta), min(90.0, lat + delta)


def is_valid_coordinate(lat: float, lng: float) -> bool:
    return (
        not (math.isnan(lat) or math.isnan(lng))
        and -90.0 <= lat <= 90.0
        and -180.0 <= lng <= 180.0
    )
