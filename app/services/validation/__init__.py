"""
Validation cascade.

Vision AI, then the internal classifier, then local heuristics. Each tier
implements ValidationProvider; the orchestrator owns the order.
"""

from app.services.validation.base import ValidationProvider, ValidationRequest, ValidationResult
from app.services.validation.gemini_provider import GeminiVisionProvider
from app.services.validation.ai_backend_provider import AIBackendProvider
from app.services.validation.heuristic_provider import HeuristicProvider
from app.services.validation.orchestrator import (
    ValidationOrchestrator,
    get_validation_orchestrator,
    reset_validation_orchestrator,
)

__all__ = [
    "ValidationProvider",
    "ValidationRequest",
    "ValidationResult",
    "GeminiVisionProvider",
    "AIBackendProvider",
    "HeuristicProvider",
    "ValidationOrchestrator",
    "get_validation_orchestrator",
    "reset_validation_orchestrator",
]
