"""
Heuristic Provider - last validation tier.

Keyword rules over title + description plus basic image/length checks.
Deterministic, no network call, never fails.
"""

from app.services.validation.base import (
    ValidationProvider,
    ValidationRequest,
    ValidationResult,
)
from app.models.issue import ProviderName, Severity
import logging
import re

logger = logging.getLogger(__name__)


CIVIC_KEYWORDS = [
    "pothole", "hole", "crack", "damaged", "road", "street",
    "garbage", "trash", "litter", "waste", "dirty", "dump",
    "drainage", "drain", "water", "flooded", "flood", "puddle",
    "streetlight", "light", "dark", "lamp", "broken light",
    "leak", "leaking", "water leak", "pipe",
    "tree", "branch", "broken branch", "fallen tree",
    "sidewalk", "pavement", "broken pavement",
    "traffic", "sign", "broken sign", "missing sign",
]

# Whole words only: "ad" must not match inside "road"
SPAM_KEYWORDS = [
    "test", "spam", "fake", "random", "hello", "demo",
    "advertisement", "ad", "promote", "buy", "sell",
]

HIGH_SEVERITY_WORDS = ["pothole", "dangerous", "hazard", "flooding", "emergency", "broken"]
MEDIUM_SEVERITY_WORDS = ["dirty", "damaged", "leak", "branch"]
LOW_SEVERITY_WORDS = ["trash", "litter", "tree"]

MIN_IMAGE_BYTES = 100
MIN_DESCRIPTION_CHARS = 10

_SPAM_PATTERN = re.compile(r"\b(" + "|".join(re.escape(word) for word in SPAM_KEYWORDS) + r")\b")


class HeuristicProvider(ValidationProvider):
    """Rule-based fallback; always enabled. Passes the reported category through."""

    name = ProviderName.HEURISTIC

    def is_enabled(self) -> bool:
        return True

    def get_timeout_seconds(self) -> float:
        return 0.1

    def validate(self, request: ValidationRequest) -> ValidationResult:
        text = f"{request.description} {request.title}".lower()

        civic_matches = sum(1 for keyword in CIVIC_KEYWORDS if keyword in text)
        spam_matches = len(set(_SPAM_PATTERN.findall(text)))
        has_image = len(request.image_bytes) > MIN_IMAGE_BYTES
        has_reasonable_length = len(request.description.strip()) > MIN_DESCRIPTION_CHARS

        if spam_matches and not civic_matches:
            confidence, matches, severity = 0.1, False, Severity.LOW.value
            response_text = "Content appears to be spam or irrelevant to civic issues."
        elif civic_matches and has_image and has_reasonable_length:
            confidence, matches, severity = 0.85, True, self._severity_from_keywords(text)
            response_text = f"Detected civic issue: {civic_matches} matching civic keywords found in description."
        elif civic_matches:
            confidence, matches, severity = 0.6, True, Severity.MEDIUM.value
            response_text = "Likely civic issue based on keywords, though image validation is limited."
        elif has_image and has_reasonable_length:
            confidence, matches, severity = 0.4, False, Severity.LOW.value
            response_text = "Submitted content does not clearly match a civic issue category."
        else:
            confidence, matches, severity = 0.2, False, Severity.LOW.value
            response_text = "Insufficient information to validate as civic issue."

        logger.info(
            f"Heuristic validation: civic={civic_matches} spam={spam_matches} "
            f"image={has_image} confidence={confidence}"
        )
        return ValidationResult(
            matches_description=matches,
            confidence=confidence,
            detected_category=request.category,
            severity=severity,
            response_text=response_text,
            provider_used=self.name
        )

    @staticmethod
    def _severity_from_keywords(text: str) -> str:
        if any(word in text for word in HIGH_SEVERITY_WORDS):
            return Severity.HIGH.value
        if any(word in text for word in MEDIUM_SEVERITY_WORDS):
            return Severity.MEDIUM.value
        if any(word in text for word in LOW_SEVERITY_WORDS):
            return Severity.LOW.value
        return Severity.MEDIUM.value
