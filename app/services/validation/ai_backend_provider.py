"""
AI Backend Provider - second validation tier.

Posts the photo to the internal classifier service (POST /ai/verify) with a
short-lived service JWT minted per call.
"""

from app.services.validation.base import (
    ValidationProvider,
    ValidationRequest,
    ValidationResult,
    check_reply_fields,
    is_invalid_label,
    map_label_to_category,
    priority_to_severity,
)
from app.core.exceptions import ProviderFailure
from app.core.settings import settings
from app.models.issue import ProviderName, Severity
from app.utils.security import create_service_token
from typing import Dict
import logging
import requests

logger = logging.getLogger(__name__)


class AIBackendProvider(ValidationProvider):
    """Internal image classifier reached over HTTP with a bearer service token."""

    name = ProviderName.SECONDARY_CLASSIFIER

    def __init__(self):
        self.base_url = settings.AI_BACKEND_URL.rstrip("/")
        self.secret = settings.INTERNAL_JWT_SECRET

    def is_enabled(self) -> bool:
        return bool(self.base_url)

    def get_timeout_seconds(self) -> float:
        return settings.AI_TIMEOUT_SECONDS

    def validate(self, request: ValidationRequest) -> ValidationResult:
        if not self.secret:
            raise ProviderFailure(self.name.value, "INTERNAL_JWT_SECRET is required for AI backend authentication")

        token = create_service_token()
        files = {"image": (request.image_name, request.image_bytes, request.mime_type)}

        try:
            response = requests.post(
                f"{self.base_url}/ai/verify",
                files=files,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.get_timeout_seconds()
            )
        except requests.RequestException as e:
            raise ProviderFailure(self.name.value, f"request failed: {e}")

        if response.status_code != 200:
            raise ProviderFailure(self.name.value, f"AI backend returned status {response.status_code}")

        try:
            verdict = response.json()
        except ValueError as e:
            raise ProviderFailure(self.name.value, f"unparseable reply: {e}")
        if not isinstance(verdict, dict):
            raise ProviderFailure(self.name.value, "reply is not a JSON object")

        return self.map_response(verdict)

    def map_response(self, verdict: Dict) -> ValidationResult:
        """Classifier {issue, confidence_reason, priority} -> ValidationResult."""
        check_reply_fields(self.name.value, verdict)
        issue = verdict.get("issue")
        reason = verdict.get("confidence_reason") or "AI validation completed"

        if is_invalid_label(issue):
            return ValidationResult(
                matches_description=False,
                confidence=settings.INVALID_LABEL_CONFIDENCE,
                detected_category=map_label_to_category(None),
                severity=Severity.LOW.value,
                response_text=reason,
                provider_used=self.name
            )

        priority = (verdict.get("priority") or "").strip().lower()
        confidence = settings.SECONDARY_PRIORITY_CONFIDENCE.get(priority, settings.UNKNOWN_PRIORITY_CONFIDENCE)
        return ValidationResult(
            matches_description=confidence > settings.LIVE_CONFIDENCE_THRESHOLD,
            confidence=confidence,
            detected_category=map_label_to_category(issue),
            severity=priority_to_severity(priority),
            response_text=reason,
            provider_used=self.name
        )
