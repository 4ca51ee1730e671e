"""
Tests for the validation cascade ordering and fallback
"""
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.core.exceptions import AllProvidersFailedError, ProviderFailure
from app.core.settings import settings
from app.models.issue import ProviderName
from app.services.validation import (
    AIBackendProvider,
    GeminiVisionProvider,
    HeuristicProvider,
    ValidationOrchestrator,
    ValidationProvider,
    ValidationRequest,
    ValidationResult,
    get_validation_orchestrator,
    reset_validation_orchestrator,
)


class FailingProvider(ValidationProvider):
    name = ProviderName.VISION_AI

    def __init__(self):
        self.calls = 0

    def is_enabled(self):
        return True

    def get_timeout_seconds(self):
        return 1.0

    def validate(self, request):
        self.calls += 1
        raise ProviderFailure(self.name.value, "service unavailable")


class FixedProvider(ValidationProvider):
    name = ProviderName.SECONDARY_CLASSIFIER

    def __init__(self, matches=True, confidence=0.9):
        self.calls = 0
        self.matches = matches
        self.confidence = confidence

    def is_enabled(self):
        return True

    def get_timeout_seconds(self):
        return 1.0

    def validate(self, request):
        self.calls += 1
        return ValidationResult(self.matches, self.confidence, "roads", "high", "fixed", self.name)


@pytest.fixture
def request_data():
    return ValidationRequest(b"img", "image/png", "Pothole", "deep pothole on the road", "roads")


class TestFallback:

    def test_falls_through_on_failure(self, request_data):
        failing, fixed = FailingProvider(), FixedProvider()
        result = ValidationOrchestrator([failing, fixed]).validate(request_data)

        assert failing.calls == 1
        assert fixed.calls == 1
        assert result.provider_used == ProviderName.SECONDARY_CLASSIFIER

    def test_negative_verdict_stops_the_cascade(self, request_data):
        negative, later = FixedProvider(matches=False, confidence=0.2), FixedProvider()
        result = ValidationOrchestrator([negative, later]).validate(request_data)

        assert result.matches_description is False
        assert later.calls == 0

    def test_all_failed(self, request_data):
        with pytest.raises(AllProvidersFailedError) as exc_info:
            ValidationOrchestrator([FailingProvider(), FailingProvider()]).validate(request_data)

        assert len(exc_info.value.failures) == 2
        assert "service unavailable" in exc_info.value.failures[0]

    def test_empty_registry_fails(self, request_data):
        with pytest.raises(AllProvidersFailedError):
            ValidationOrchestrator([]).validate(request_data)

    def test_result_confidence_is_clamped(self):
        result = ValidationResult(True, 1.7, "roads", "high", "", ProviderName.HEURISTIC)
        assert result.confidence == 1.0


class TestRegistration:

    def test_ai_disabled_registers_heuristic_only(self):
        orchestrator = ValidationOrchestrator()
        assert [type(p) for p in orchestrator.providers] == [HeuristicProvider]

    def test_default_order_without_gemini_key(self, monkeypatch):
        monkeypatch.setattr(settings, "AI_ENABLED", True)
        orchestrator = ValidationOrchestrator()
        assert [type(p) for p in orchestrator.providers] == [AIBackendProvider, HeuristicProvider]

    def test_heuristic_can_be_disabled(self, monkeypatch):
        monkeypatch.setattr(settings, "AI_ENABLED", True)
        monkeypatch.setattr(settings, "HEURISTIC_FALLBACK_ENABLED", False)
        orchestrator = ValidationOrchestrator()
        assert [type(p) for p in orchestrator.providers] == [AIBackendProvider]

    def test_singleton_reset(self):
        first = get_validation_orchestrator()
        assert get_validation_orchestrator() is first
        reset_validation_orchestrator()
        assert get_validation_orchestrator() is not first


def _http_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _gemini_reply(verdict):
    return _http_response({"candidates": [{"content": {"parts": [{"text": json.dumps(verdict)}]}}]})


class TestFullCascade:
    """Vision model, then internal classifier, then heuristic, over mocked HTTP."""

    @pytest.fixture
    def cascade(self, monkeypatch):
        monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
        return ValidationOrchestrator([GeminiVisionProvider(), AIBackendProvider(), HeuristicProvider()])

    @pytest.fixture
    def civic_request(self):
        return ValidationRequest(b"\x89PNG" + b"\x00" * 200, "image/png", "Pothole", "deep pothole on the road", "roads")

    def test_network_down_ends_at_heuristic(self, cascade, civic_request):
        with patch("requests.post", side_effect=requests.ConnectionError("unreachable")) as mock_post:
            result = cascade.validate(civic_request)

        assert mock_post.call_count == 2
        assert "generateContent" in mock_post.call_args_list[0].args[0]
        assert mock_post.call_args_list[1].args[0].endswith("/ai/verify")
        assert result.provider_used == ProviderName.HEURISTIC
        assert result.confidence == 0.85

    def test_vision_answer_stops_the_cascade(self, cascade, civic_request):
        reply = _gemini_reply({"issue": "Pothole", "confidence_reason": "Deep pothole", "priority": "High"})
        with patch("requests.post", return_value=reply) as mock_post, \
                patch.object(HeuristicProvider, "validate") as heuristic:
            result = cascade.validate(civic_request)

        assert mock_post.call_count == 1
        heuristic.assert_not_called()
        assert result.provider_used == ProviderName.VISION_AI
        assert result.confidence == 0.9

    def test_malformed_replies_fall_through(self, cascade, civic_request):
        replies = [
            _gemini_reply({"issue": "Pothole", "confidence_reason": "x", "priority": 1}),
            _http_response({"issue": ["Pothole"], "priority": "High"}),
        ]
        with patch("requests.post", side_effect=replies):
            result = cascade.validate(civic_request)

        assert result.provider_used == ProviderName.HEURISTIC

    def test_malformed_replies_without_heuristic(self, monkeypatch, civic_request):
        monkeypatch.setattr(settings, "GEMINI_API_KEY", "test-key")
        cascade = ValidationOrchestrator([GeminiVisionProvider(), AIBackendProvider()])
        replies = [
            _gemini_reply({"issue": "Pothole", "confidence_reason": ["x"], "priority": "High"}),
            _http_response({"issue": "Pothole", "priority": 2}),
        ]
        with patch("requests.post", side_effect=replies):
            with pytest.raises(AllProvidersFailedError) as exc_info:
                cascade.validate(civic_request)

        assert all("malformed reply" in failure for failure in exc_info.value.failures)
