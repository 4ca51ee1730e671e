"""
Validation Service - runs the cascade for a pending issue and applies the verdict.

Decision rule (applied here, once per issue):
    live     iff matches_description and confidence > LIVE_CONFIDENCE_THRESHOLD
    rejected otherwise

Validation is idempotent: an issue that already left `pending` is never
re-judged, and a verdict that loses a race with another writer is dropped.
"""

from app.core.exceptions import AllProvidersFailedError, InvalidInputError, InvalidTransitionError
from app.core.settings import settings
from app.models.issue import IssueCategory
from app.services.image_storage import load_image_bytes
from app.services.issue_store import IssueStore, get_issue_store
from app.services.status_workflow import Actor, IssueStatus
from app.services.validation import ValidationOrchestrator, ValidationRequest, ValidationResult, get_validation_orchestrator
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import logging
import threading

import requests

logger = logging.getLogger(__name__)

SYSTEM_USER = "system"
MANUAL_REVIEW_NOTE = "Automatic validation unavailable; manual review required."

_CATEGORY_VALUES = {category.value for category in IssueCategory}


def decide(result: ValidationResult) -> IssueStatus:
    if result.matches_description and result.confidence > settings.LIVE_CONFIDENCE_THRESHOLD:
        return IssueStatus.LIVE
    return IssueStatus.REJECTED


def build_verdict_updates(result: ValidationResult, target: IssueStatus) -> Dict:
    """Fields written together with the pending -> live/rejected transition."""
    updates = {
        "validation": result.to_validation_block(),
        "confidence_score": result.confidence,
        "severity": result.severity,
        "detected_category": result.detected_category,
    }
    if (
        target == IssueStatus.LIVE
        and result.detected_category in _CATEGORY_VALUES
        and result.detected_category != IssueCategory.OTHER.value
    ):
        updates["category"] = result.detected_category
    return updates


def _failure_block(failures: List[str]) -> Dict:
    return {
        "validated": False,
        "confidence": 0.0,
        "matches_description": False,
        "response_text": MANUAL_REVIEW_NOTE,
        "provider_used": None,
        "validated_at": datetime.now(timezone.utc),
        "failures": failures,
    }


class ValidationService:

    def __init__(
        self,
        store: Optional[IssueStore] = None,
        orchestrator: Optional[ValidationOrchestrator] = None
    ):
        self.store = store or get_issue_store()
        self.orchestrator = orchestrator or get_validation_orchestrator()

    def _load_image(self, issue: Dict) -> Tuple[bytes, str]:
        return load_image_bytes(issue.get("image_url") or "")

    def _record_failure(self, issue_id: str, failures: List[str]) -> Dict:
        logger.error(f"❌ Validation failed for issue {issue_id}, left pending for manual review: {failures}")
        self.store.update_if_status(issue_id, IssueStatus.PENDING, {"validation": _failure_block(failures)})
        return self.store.get_or_raise(issue_id)

    def validate_issue(
        self,
        issue_id: str,
        image_bytes: Optional[bytes] = None,
        mime_type: Optional[str] = None
    ) -> Dict:
        """
        Validate one pending issue and move it to live or rejected.

        Args:
            issue_id: Firestore document ID
            image_bytes: Original upload; fetched from image_url when omitted
            mime_type: MIME type of image_bytes

        Returns:
            The issue as stored afterwards

        Raises:
            IssueNotFoundError: unknown issue
        """
        issue = self.store.get_or_raise(issue_id)
        if issue.get("status") != IssueStatus.PENDING.value:
            logger.info(f"Issue {issue_id} is {issue.get('status')}, skipping validation")
            return issue

        if image_bytes is None:
            try:
                image_bytes, mime_type = self._load_image(issue)
            except (requests.RequestException, InvalidInputError) as e:
                return self._record_failure(issue_id, [f"image: {e}"])

        request = ValidationRequest(
            image_bytes=image_bytes,
            mime_type=mime_type,
            title=issue.get("title", ""),
            description=issue.get("description", ""),
            category=issue.get("category", IssueCategory.OTHER.value),
        )

        try:
            result = self.orchestrator.validate(request)
        except AllProvidersFailedError as e:
            return self._record_failure(issue_id, e.failures)

        target = decide(result)
        try:
            updated = self.store.apply_transition(
                issue_id,
                target,
                Actor.SYSTEM,
                SYSTEM_USER,
                updates=build_verdict_updates(result, target),
                note=result.response_text,
            )
        except InvalidTransitionError as e:
            logger.info(f"Discarding validation result for issue {issue_id}: {e.message}")
            return self.store.get_or_raise(issue_id)

        logger.info(
            f"Issue {issue_id} validated by {result.provider_used.value}: "
            f"{target.value} (confidence={result.confidence})"
        )
        return updated

    def revalidate(self, issue_id: str) -> Dict:
        """Re-run the cascade for an issue still pending (e.g. after all providers failed)."""
        return self.validate_issue(issue_id)


def get_validation_service() -> ValidationService:
    return ValidationService()


def run_validation_task(issue_id: str, image_bytes: Optional[bytes] = None, mime_type: Optional[str] = None) -> None:
    """
    Background entry point; the issue stays pending if anything goes wrong.
    """
    try:
        get_validation_service().validate_issue(issue_id, image_bytes, mime_type)
    except Exception as e:
        logger.error(f"Background validation crashed for issue {issue_id}: {e}", exc_info=True)


def schedule_validation(
    issue_id: str,
    image_bytes: Optional[bytes] = None,
    mime_type: Optional[str] = None,
    background_tasks=None
) -> None:
    """
    Run validation off the request path.

    Uses FastAPI BackgroundTasks when given, otherwise a daemon thread.
    """
    if background_tasks is not None:
        background_tasks.add_task(run_validation_task, issue_id, image_bytes, mime_type)
        return

    thread = threading.Thread(
        target=run_validation_task,
        args=(issue_id, image_bytes, mime_type),
        name=f"validate-{issue_id}",
        daemon=True,
    )
    thread.start()
