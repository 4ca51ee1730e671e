"""
Validation Orchestrator - ordered provider list with fallback.

Tries tiers in priority order; only a ProviderFailure moves on to the next.
A successful "not a civic issue" verdict ends the cascade.
"""

from app.services.validation.base import ValidationProvider, ValidationRequest, ValidationResult
from app.services.validation.gemini_provider import GeminiVisionProvider
from app.services.validation.ai_backend_provider import AIBackendProvider
from app.services.validation.heuristic_provider import HeuristicProvider
from app.core.exceptions import AllProvidersFailedError, ProviderFailure
from app.core.settings import settings
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class ValidationOrchestrator:
    """Registry of validation tiers with fallback logic."""

    def __init__(self, providers: Optional[List[ValidationProvider]] = None):
        self.providers: List[ValidationProvider] = []
        if providers is not None:
            self.providers = list(providers)
        else:
            self._initialize_providers()

    def _initialize_providers(self):
        """Register tiers in priority order."""
        if not settings.AI_ENABLED:
            logger.info("⚠️ AI is disabled globally (AI_ENABLED=false), using heuristic provider only")
            self.providers.append(HeuristicProvider())
            return

        # Priority 1: vision model (only with an API key)
        gemini_provider = GeminiVisionProvider()
        if gemini_provider.is_enabled():
            self.providers.append(gemini_provider)
            logger.info("✅ Gemini Vision Provider registered")

        # Priority 2: internal classifier
        backend_provider = AIBackendProvider()
        if backend_provider.is_enabled():
            self.providers.append(backend_provider)
            logger.info("✅ AI Backend Provider registered")

        # Priority 3: local rules
        if settings.HEURISTIC_FALLBACK_ENABLED:
            self.providers.append(HeuristicProvider())
            logger.info("✅ Heuristic Provider registered (fallback)")

    def validate(self, request: ValidationRequest) -> ValidationResult:
        """
        Run the cascade for one issue.

        Raises:
            AllProvidersFailedError: every registered tier raised ProviderFailure
        """
        failures: List[str] = []
        for provider in self.providers:
            try:
                logger.info(f"Trying validation provider: {provider.name.value}")
                result = provider.validate(request)
            except ProviderFailure as e:
                logger.warning(f"Provider {provider.name.value} failed: {e.reason}")
                failures.append(e.message)
                continue

            logger.info(
                f"✅ Validation by {provider.name.value}: "
                f"matches={result.matches_description} confidence={result.confidence}"
            )
            return result

        raise AllProvidersFailedError(failures or ["no validation providers registered"])


# Global orchestrator instance (singleton)
_orchestrator: Optional[ValidationOrchestrator] = None


def get_validation_orchestrator() -> ValidationOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ValidationOrchestrator()
    return _orchestrator


def reset_validation_orchestrator() -> None:
    """Drop the cached instance so the next call re-reads settings."""
    global _orchestrator
    _orchestrator = None
