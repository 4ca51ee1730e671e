"""
Gemini Vision Provider - first validation tier.

Sends the issue photo inline to the Gemini generateContent endpoint and maps
the model's {issue, confidence_reason, priority} verdict to a ValidationResult.
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
from typing import Dict
import base64
import json
import logging
import requests

logger = logging.getLogger(__name__)


PROMPT = """You are a civic issue verification AI for an urban reporting system.

Analyze the provided image and:
1. Identify if it shows a civic issue (Garbage, Pothole, Drainage, Streetlight, WaterLeak, etc.)
2. Classify the issue type
3. Assess the severity/priority
4. Determine if this appears to be a legitimate public issue

If the image does NOT show a clear civic issue or appears to be spam/invalid, respond with "INVALID".

RESPOND WITH STRICT JSON ONLY (no markdown, no text before/after):
{
  "issue": "Issue type or INVALID",
  "confidence_reason": "Brief explanation of what was detected",
  "priority": "High/Medium/Low"
}"""


def parse_model_json(text: str) -> Dict:
    """
    Parse a JSON object out of model text.

    Models sometimes wrap JSON in markdown code blocks.
    """
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]
    parsed = json.loads(text.strip())
    if not isinstance(parsed, dict):
        raise ValueError("model reply is not a JSON object")
    return parsed


class GeminiVisionProvider(ValidationProvider):
    """
    Google Gemini vision tier.

    Requires GEMINI_API_KEY. Any transport, HTTP or parse problem is raised as
    ProviderFailure so the cascade moves on.
    """

    name = ProviderName.VISION_AI

    def __init__(self):
        self.api_key = settings.GEMINI_API_KEY
        self.model = settings.GEMINI_MODEL
        self.enabled = bool(self.api_key and self.api_key.strip())

        if self.enabled:
            logger.info(f"✅ Gemini Vision Provider initialized: {self.model}")
        else:
            logger.info("⚠️ Gemini Vision Provider disabled: No API key configured")

    def is_enabled(self) -> bool:
        return self.enabled

    def get_timeout_seconds(self) -> float:
        return settings.AI_TIMEOUT_SECONDS

    def validate(self, request: ValidationRequest) -> ValidationResult:
        if not self.enabled:
            raise ProviderFailure(self.name.value, "Gemini API key not configured")

        text = self._call_gemini_api(request)
        try:
            verdict = parse_model_json(text)
        except ValueError as e:
            raise ProviderFailure(self.name.value, f"unparseable reply: {e}")

        return self._map_verdict(verdict)

    def _call_gemini_api(self, request: ValidationRequest) -> str:
        url = f"{settings.GEMINI_API_BASE_URL}/models/{self.model}:generateContent"
        payload = {
            "contents": [{
                "role": "user",
                "parts": [
                    {"text": PROMPT},
                    {
                        "inline_data": {
                            "mime_type": request.mime_type,
                            "data": base64.b64encode(request.image_bytes).decode("ascii")
                        }
                    }
                ]
            }],
            "generationConfig": {
                "temperature": 0.2,
                "maxOutputTokens": 500
            }
        }

        try:
            response = requests.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.get_timeout_seconds()
            )
        except requests.RequestException as e:
            raise ProviderFailure(self.name.value, f"request failed: {e}")

        if response.status_code != 200:
            raise ProviderFailure(self.name.value, f"Gemini API returned status {response.status_code}")

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name.value, f"unexpected response shape: {e}")

    def _map_verdict(self, verdict: Dict) -> ValidationResult:
        check_reply_fields(self.name.value, verdict)
        issue = verdict.get("issue") or ""
        reason = verdict.get("confidence_reason") or "AI validation completed"

        if not issue or is_invalid_label(issue):
            return ValidationResult(
                matches_description=False,
                confidence=settings.INVALID_LABEL_CONFIDENCE,
                detected_category=map_label_to_category(None),
                severity=Severity.LOW.value,
                response_text=reason,
                provider_used=self.name
            )

        priority = (verdict.get("priority") or "").strip().lower()
        return ValidationResult(
            matches_description=True,
            confidence=settings.VISION_PRIORITY_CONFIDENCE.get(priority, settings.UNKNOWN_PRIORITY_CONFIDENCE),
            detected_category=map_label_to_category(issue),
            severity=priority_to_severity(priority),
            response_text=reason,
            provider_used=self.name
        )
