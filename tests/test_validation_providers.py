"""
Tests for the three validation tiers
"""
import json

import pytest
import requests
from jose import jwt
from unittest.mock import MagicMock, patch

from app.core.exceptions import ProviderFailure
from app.core.settings import settings
from app.services.validation import AIBackendProvider, GeminiVisionProvider, HeuristicProvider, ValidationRequest
from app.services.validation.base import map_label_to_category


def _request(png_bytes=b"", title="Pothole on 5th", description="large pothole causing traffic hazard", category="roads"):
    return ValidationRequest(png_bytes, "image/png", title, description, category)


def _http_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestCategoryMapping:

    @pytest.mark.parametrize("label,expected", [
        ("Pothole", "roads"),
        ("Garbage dump", "garbage"),
        ("Drainage overflow", "water"),
        ("Broken streetlight", "electricity"),
        ("Graffiti", "other"),
        (None, "other"),
    ])
    def test_keyword_containment(self, label, expected):
        assert map_label_to_category(label) == expected


class TestHeuristicProvider:

    def test_civic_issue_with_image(self, png_bytes):
        result = HeuristicProvider().validate(_request(png_bytes))

        assert result.matches_description is True
        assert result.confidence == 0.85
        assert result.severity == "high"
        assert result.detected_category == "roads"
        assert result.provider_used.value == "heuristic"
        assert "3 matching civic keywords" in result.response_text

    def test_spam_without_civic_keywords(self, png_bytes):
        result = HeuristicProvider().validate(_request(png_bytes, title="hello", description="buy cheap phones now"))

        assert result.matches_description is False
        assert result.confidence == 0.1
        assert result.severity == "low"

    def test_spam_words_match_whole_words_only(self, png_bytes):
        # "ad" inside "road" is not spam
        result = HeuristicProvider().validate(
            _request(png_bytes, title="Road", description="the road surface has a deep crack")
        )
        assert result.confidence == 0.85

    def test_civic_keywords_without_image(self):
        result = HeuristicProvider().validate(_request(b""))

        assert result.matches_description is True
        assert result.confidence == 0.6
        assert result.severity == "medium"

    def test_image_and_text_without_civic_keywords(self, png_bytes):
        result = HeuristicProvider().validate(
            _request(png_bytes, title="Photo", description="something odd near my house", category="other")
        )
        assert result.matches_description is False
        assert result.confidence == 0.4

    def test_insufficient_information(self):
        result = HeuristicProvider().validate(_request(b"", title="x", description="meh", category="other"))

        assert result.matches_description is False
        assert result.confidence == 0.2

    def test_falls_back_to_reported_category(self, png_bytes):
        result = HeuristicProvider().validate(
            _request(png_bytes, title="Crack", description="big crack across the sidewalk", category="roads")
        )
        assert result.detected_category == "roads"

    def test_reported_category_is_kept(self, png_bytes):
        # Mentions a road, but the reporter filed it under electricity
        result = HeuristicProvider().validate(_request(
            png_bytes,
            title="Broken streetlight",
            description="streetlight on the main road is broken and dark",
            category="electricity",
        ))

        assert result.confidence == 0.85
        assert result.detected_category == "electricity"


class TestGeminiVisionProvider:

    @pytest.fixture
    def provider(self, monkeypatch):
        monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
        return GeminiVisionProvider()

    def test_disabled_without_key(self):
        provider = GeminiVisionProvider()
        assert not provider.is_enabled()
        with pytest.raises(ProviderFailure):
            provider.validate(_request(b"img"))

    def test_valid_issue_with_fenced_json(self, provider, png_bytes):
        text = "```json\n" + json.dumps({
            "issue": "Pothole", "confidence_reason": "Deep pothole on asphalt", "priority": "High"
        }) + "\n```"
        with patch("app.services.validation.gemini_provider.requests.post",
                   return_value=_http_response(200, _gemini_payload(text))) as mock_post:
            result = provider.validate(_request(png_bytes))

        assert result.matches_description is True
        assert result.confidence == 0.9
        assert result.severity == "high"
        assert result.detected_category == "roads"
        assert result.response_text == "Deep pothole on asphalt"

        body = mock_post.call_args.kwargs["json"]
        inline = body["contents"][0]["parts"][1]["inline_data"]
        assert inline["mime_type"] == "image/png"
        assert mock_post.call_args.kwargs["params"] == {"key": "test-key"}

    def test_invalid_label_is_a_result_not_a_failure(self, provider, png_bytes):
        text = json.dumps({"issue": "INVALID", "confidence_reason": "Selfie", "priority": "Low"})
        with patch("app.services.validation.gemini_provider.requests.post",
                   return_value=_http_response(200, _gemini_payload(text))):
            result = provider.validate(_request(png_bytes))

        assert result.matches_description is False
        assert result.confidence == 0.2
        assert result.severity == "low"

    def test_unknown_priority(self, provider, png_bytes):
        text = json.dumps({"issue": "Garbage", "confidence_reason": "Pile of waste", "priority": "Urgent"})
        with patch("app.services.validation.gemini_provider.requests.post",
                   return_value=_http_response(200, _gemini_payload(text))):
            result = provider.validate(_request(png_bytes))

        assert result.confidence == 0.7
        assert result.severity == "medium"
        assert result.detected_category == "garbage"

    def test_http_error_is_failure(self, provider, png_bytes):
        with patch("app.services.validation.gemini_provider.requests.post",
                   return_value=_http_response(403, {})):
            with pytest.raises(ProviderFailure):
                provider.validate(_request(png_bytes))

    def test_timeout_is_failure(self, provider, png_bytes):
        with patch("app.services.validation.gemini_provider.requests.post",
                   side_effect=requests.Timeout("slow")):
            with pytest.raises(ProviderFailure):
                provider.validate(_request(png_bytes))

    def test_unparseable_reply_is_failure(self, provider, png_bytes):
        with patch("app.services.validation.gemini_provider.requests.post",
                   return_value=_http_response(200, _gemini_payload("I think it's a pothole"))):
            with pytest.raises(ProviderFailure):
                provider.validate(_request(png_bytes))

    @pytest.mark.parametrize("reply", [
        {"issue": "Pothole", "confidence_reason": "x", "priority": 1},
        {"issue": ["Pothole"], "confidence_reason": "x", "priority": "High"},
        {"issue": "Pothole", "confidence_reason": {"text": "x"}, "priority": "High"},
    ])
    def test_non_text_fields_are_failure(self, provider, png_bytes, reply):
        with patch("app.services.validation.gemini_provider.requests.post",
                   return_value=_http_response(200, _gemini_payload(json.dumps(reply)))):
            with pytest.raises(ProviderFailure) as exc_info:
                provider.validate(_request(png_bytes))

        assert "malformed reply" in exc_info.value.reason


class TestAIBackendProvider:

    def test_sends_signed_service_token(self, png_bytes):
        reply = {"issue": "Drainage", "confidence_reason": "Blocked drain", "priority": "Medium"}
        with patch("app.services.validation.ai_backend_provider.requests.post",
                   return_value=_http_response(200, reply)) as mock_post:
            result = AIBackendProvider().validate(_request(png_bytes))

        assert mock_post.call_args.args[0] == "http://ai-backend.test/ai/verify"
        assert "image" in mock_post.call_args.kwargs["files"]

        token = mock_post.call_args.kwargs["headers"]["Authorization"].split(" ", 1)[1]
        claims = jwt.decode(token, "internal-test-secret", algorithms=["HS256"], issuer="civicfix-backend")
        assert claims["role"] == "INTERNAL_SERVICE"
        assert claims["exp"] - claims["iat"] == settings.INTERNAL_JWT_TTL_SECONDS

        assert result.confidence == 0.75
        assert result.matches_description is True
        assert result.detected_category == "water"

    def test_low_priority_does_not_match(self):
        result = AIBackendProvider().map_response({"issue": "Pothole", "priority": "Low"})
        assert result.confidence == 0.6
        assert result.matches_description is False

    def test_invalid_label(self):
        result = AIBackendProvider().map_response({"issue": "INVALID", "priority": "High"})
        assert result.matches_description is False
        assert result.confidence == 0.2

    def test_unknown_label_maps_to_other(self):
        result = AIBackendProvider().map_response({"issue": "Graffiti", "priority": "High"})
        assert result.detected_category == "other"
        assert result.confidence == 0.9

    def test_missing_secret_is_failure(self, monkeypatch):
        monkeypatch.setattr(settings, "INTERNAL_JWT_SECRET", None)
        with pytest.raises(ProviderFailure):
            AIBackendProvider().validate(_request(b"img"))

    def test_connection_error_is_failure(self, png_bytes):
        with patch("app.services.validation.ai_backend_provider.requests.post",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(ProviderFailure):
                AIBackendProvider().validate(_request(png_bytes))

    def test_server_error_is_failure(self, png_bytes):
        with patch("app.services.validation.ai_backend_provider.requests.post",
                   return_value=_http_response(500, {})):
            with pytest.raises(ProviderFailure):
                AIBackendProvider().validate(_request(png_bytes))

    @pytest.mark.parametrize("reply", [
        {"issue": ["Pothole"], "priority": "High"},
        {"issue": "Pothole", "priority": 3},
        {"issue": "Pothole", "priority": "High", "confidence_reason": 0.9},
    ])
    def test_non_text_fields_are_failure(self, png_bytes, reply):
        with patch("app.services.validation.ai_backend_provider.requests.post",
                   return_value=_http_response(200, reply)):
            with pytest.raises(ProviderFailure) as exc_info:
                AIBackendProvider().validate(_request(png_bytes))

        assert "malformed reply" in exc_info.value.reason
