"""
Validation Provider Base Interface.

Defines the contract for validation tiers (vision AI, secondary classifier,
local heuristic). All tiers must implement this interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional
import logging

from app.core.exceptions import ProviderFailure
from app.core.settings import settings
from app.models.issue import IssueCategory, ProviderName, Severity

logger = logging.getLogger(__name__)

INVALID_LABEL = "INVALID"


class ValidationRequest:
    """Everything a tier may look at for one issue."""

    def __init__(
        self,
        image_bytes: bytes,
        mime_type: str,
        title: str,
        description: str,
        category: str,
        image_name: str = "issue-image"
    ):
        self.image_bytes = image_bytes or b""
        self.mime_type = mime_type or "image/jpeg"
        self.title = title or ""
        self.description = description or ""
        self.category = category or IssueCategory.OTHER.value
        self.image_name = image_name


class ValidationResult:
    """
    Standardized validation result.

    All providers must return this structure on success. Confidence is
    clamped to [0, 1].
    """

    def __init__(
        self,
        matches_description: bool,
        confidence: float,
        detected_category: str,
        severity: str,
        response_text: str,
        provider_used: ProviderName
    ):
        self.matches_description = bool(matches_description)
        self.confidence = min(1.0, max(0.0, float(confidence)))
        self.detected_category = detected_category
        self.severity = severity
        self.response_text = response_text
        self.provider_used = ProviderName(provider_used)

    def to_validation_block(self, validated_at: Optional[datetime] = None) -> Dict:
        """Shape stored under the issue's `validation` field."""
        return {
            "validated": True,
            "confidence": self.confidence,
            "matches_description": self.matches_description,
            "response_text": self.response_text,
            "provider_used": self.provider_used.value,
            "validated_at": validated_at or datetime.now(timezone.utc),
            "failures": []
        }

    def to_dict(self) -> Dict:
        return {
            "matches_description": self.matches_description,
            "confidence": self.confidence,
            "detected_category": self.detected_category,
            "severity": self.severity,
            "response_text": self.response_text,
            "provider_used": self.provider_used.value
        }


class ValidationProvider(ABC):
    """
    Abstract base class for validation tiers.

    validate() either returns a ValidationResult or raises ProviderFailure;
    the orchestrator falls through to the next tier only on failure.
    """

    name: ProviderName

    @abstractmethod
    def is_enabled(self) -> bool:
        """True if the provider is configured and may be registered."""
        pass

    @abstractmethod
    def get_timeout_seconds(self) -> float:
        pass

    @abstractmethod
    def validate(self, request: ValidationRequest) -> ValidationResult:
        """
        Judge whether the photo/text describe a real civic issue.

        Raises:
            ProviderFailure: transport, auth, timeout or parse errors
        """
        pass


def map_label_to_category(label: Optional[str], keywords: Optional[Mapping[str, str]] = None) -> str:
    """
    Map a free-text issue label to a category; first keyword contained wins.

    "Pothole on main road" -> "roads"; unknown labels -> "other".
    """
    if not label:
        return IssueCategory.OTHER.value
    text = label.lower()
    for keyword, category in (keywords or settings.CATEGORY_KEYWORDS).items():
        if keyword in text:
            return category
    return IssueCategory.OTHER.value


def priority_to_severity(priority: Optional[str]) -> str:
    """High/Medium/Low -> high/medium/low, anything else -> medium."""
    value = (priority or "").strip().lower()
    if value in (Severity.HIGH.value, Severity.MEDIUM.value, Severity.LOW.value):
        return value
    return Severity.MEDIUM.value


def is_invalid_label(label: Optional[str]) -> bool:
    return (label or "").strip().upper() == INVALID_LABEL


REPLY_TEXT_FIELDS = ("issue", "confidence_reason", "priority")


def check_reply_fields(provider: str, verdict: Mapping) -> None:
    """
    Model/classifier replies carry text fields only.

    Raises:
        ProviderFailure: a reply field is present but not a string
    """
    for field in REPLY_TEXT_FIELDS:
        value = verdict.get(field)
        if value is not None and not isinstance(value, str):
            raise ProviderFailure(provider, f"malformed reply: '{field}' is {type(value).__name__}, expected text")
