"""
Live feed queries.

Only `live` issues are ever returned. With coordinates the feed is nearest
first inside a radius; without, newest first.
"""

from app.core.exceptions import InvalidInputError
from app.core.settings import settings
from app.services.issue_store import IssueStore, get_issue_store
from app.services.status_workflow import StatusWorkflowEngine
from app.utils.geo import haversine_meters, is_valid_coordinate, latitude_bounds
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"


class GeoQueryService:

    def __init__(self, store: Optional[IssueStore] = None):
        self.store = store or get_issue_store()

    def get_live_issues(
        self,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius_meters: Optional[float] = None,
        category: Optional[str] = None
    ) -> List[Dict]:
        """
        Public feed of live issues.

        Args:
            lat, lng: Both or neither
            radius_meters: Defaults to LIVE_FEED_DEFAULT_RADIUS_METERS
            category: Category filter; "all" or None for every category

        Raises:
            InvalidInputError: only one of lat/lng, bad coordinates, radius <= 0
        """
        if (lat is None) != (lng is None):
            raise InvalidInputError("lat and lng must be provided together", ["lat", "lng"])

        radius = settings.LIVE_FEED_DEFAULT_RADIUS_METERS if radius_meters is None else radius_meters
        if radius <= 0:
            raise InvalidInputError("radius must be greater than 0", ["radius"])

        category_filter = None if not category or category.lower() == ALL_CATEGORIES else category.lower()
        limit = settings.LIVE_FEED_LIMIT

        if lat is None:
            issues = self.store.find_live(category=category_filter, newest_first=True, limit=limit)
            return [issue for issue in issues if StatusWorkflowEngine.is_publicly_visible(issue.get("status"))]

        if not is_valid_coordinate(lat, lng):
            raise InvalidInputError("lat/lng out of range", ["lat", "lng"])

        candidates = self.store.find_live(category=category_filter, lat_range=latitude_bounds(lat, radius))

        nearby = []
        for issue in candidates:
            if not StatusWorkflowEngine.is_publicly_visible(issue.get("status")):
                continue
            location = issue.get("location") or {}
            try:
                distance = haversine_meters(lat, lng, float(location["lat"]), float(location["lng"]))
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Issue {issue.get('id')} has no usable location, skipped in feed")
                continue
            if distance <= radius:
                issue["distance_meters"] = round(distance, 1)
                nearby.append(issue)

        nearby.sort(key=lambda item: item["distance_meters"])
        return nearby[:limit]


def get_geo_query_service() -> GeoQueryService:
    return GeoQueryService()
