"""
Issue submission.

Checks the citizen's input, stores the photo, enriches the location,
persists the issue as `pending` and hands it to validation in the
background. The caller gets the pending issue back immediately.
"""

from app.core.exceptions import InvalidInputError
from app.models.issue import IssueCategory, Severity
from app.services.geocoding import reverse_geocode
from app.services.image_storage import check_image, decode_data_uri, store_image
from app.services.issue_store import IssueStore, get_issue_store
from app.services.status_workflow import Actor, IssueStatus, StatusWorkflowEngine
from app.services.validation_service import schedule_validation
from app.utils.geo import is_valid_coordinate
from typing import Dict, Optional, Tuple, Union
import json
import logging

logger = logging.getLogger(__name__)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_location(raw: Union[str, Dict]) -> Tuple[float, float]:
    """
    Accept a {lat, lng} dict or its JSON string.

    Raises:
        InvalidInputError: malformed, non-numeric or out-of-range coordinates
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise InvalidInputError("location must be JSON like {\"lat\": 12.9, \"lng\": 77.6}", ["location"])

    if not isinstance(raw, dict) or "lat" not in raw or "lng" not in raw:
        raise InvalidInputError("location must contain lat and lng", ["location"])

    try:
        lat = float(raw["lat"])
        lng = float(raw["lng"])
    except (TypeError, ValueError):
        raise InvalidInputError("location lat/lng must be numbers", ["location"])

    if not is_valid_coordinate(lat, lng):
        raise InvalidInputError("location lat/lng out of range", ["location"])
    return lat, lng


class SubmissionService:

    def __init__(self, store: Optional[IssueStore] = None):
        self.store = store or get_issue_store()

    def submit_issue(
        self,
        reporter_id: str,
        title: Optional[str],
        description: Optional[str],
        category: Optional[str],
        location: Union[str, Dict, None],
        image_bytes: Optional[bytes] = None,
        image_mime_type: Optional[str] = None,
        image_url: Optional[str] = None,
        background_tasks=None
    ) -> Dict:
        """
        Create a pending issue and schedule its validation.

        Args:
            reporter_id: Authenticated citizen
            title, description, category: Form fields
            location: {lat, lng} dict or JSON string
            image_bytes / image_mime_type: Uploaded file
            image_url: Alternative to an upload (data URI or http(s) URL)
            background_tasks: FastAPI BackgroundTasks on the HTTP path

        Returns:
            The stored pending issue

        Raises:
            InvalidInputError: missing or malformed input
        """
        has_image = bool(image_bytes) or not _is_blank(image_url)
        missing = [
            name for name, value in (
                ("title", title),
                ("description", description),
                ("category", category),
                ("location", location),
            )
            if _is_blank(value)
        ]
        if not has_image:
            missing.append("image")
        if missing:
            raise InvalidInputError(f"Missing required fields: {', '.join(missing)}", missing)

        category = category.strip().lower()
        if category not in {c.value for c in IssueCategory}:
            raise InvalidInputError(
                f"Invalid category '{category}'. Allowed: {', '.join(c.value for c in IssueCategory)}",
                ["category"]
            )

        lat, lng = parse_location(location)

        if image_bytes:
            image_mime_type = check_image(image_bytes, image_mime_type)
            stored_url = store_image(image_bytes, image_mime_type)
        else:
            image_url = image_url.strip()
            if image_url.startswith("data:"):
                image_bytes, image_mime_type = decode_data_uri(image_url)
                image_mime_type = check_image(image_bytes, image_mime_type)
                stored_url = store_image(image_bytes, image_mime_type)
            elif image_url.startswith(("http://", "https://")):
                # Hosted elsewhere; validation fetches it
                stored_url = image_url
                image_bytes, image_mime_type = None, None
            else:
                raise InvalidInputError("imageUrl must be a base64 data URI or an http(s) URL", ["imageUrl"])

        place = reverse_geocode(lat, lng)

        issue_data = {
            "reporter_id": reporter_id,
            "title": title.strip(),
            "description": description.strip(),
            "category": category,
            "detected_category": None,
            "image_url": stored_url,
            "location": {
                "lat": lat,
                "lng": lng,
                "coordinates": [lng, lat],
                "address": place.get("address"),
                "city": place.get("city"),
                "state": place.get("state"),
            },
            "status": IssueStatus.PENDING.value,
            "severity": Severity.MEDIUM.value,
            "upvotes": 0,
            "validation": None,
            "confidence_score": None,
            "status_history": [
                StatusWorkflowEngine.create_status_history_entry(
                    from_status=None,
                    to_status=IssueStatus.PENDING,
                    actor=Actor.REPORTER,
                    changed_by=reporter_id,
                    note="Issue submitted"
                )
            ],
            "reopen_count": 0,
            "last_rejection_reason": None,
        }

        issue = self.store.create(issue_data)
        logger.info(f"Issue {issue['id']} submitted by {reporter_id} ({category}) at {lat:.5f},{lng:.5f}")

        schedule_validation(issue["id"], image_bytes, image_mime_type, background_tasks)
        return issue


def get_submission_service() -> SubmissionService:
    return SubmissionService()
