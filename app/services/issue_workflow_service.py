"""
Issue Workflow Service - officer and citizen actions on existing issues.

Officers move work forward (live -> in-progress -> awaiting-verification)
and re-grade severity. Only the original reporter confirms a fix, reopens
it, or deletes the issue.
"""

from firebase_admin import firestore
from app.core.exceptions import InvalidInputError, PermissionDeniedError
from app.services.issue_store import IssueStore, get_issue_store
from app.services.status_workflow import Actor, IssueStatus
from typing import Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


def _reporter_only(user_id: str, action: str) -> Callable[[Dict], None]:
    def guard(issue: Dict) -> None:
        if issue.get("reporter_id") != user_id:
            raise PermissionDeniedError(f"Only the reporter can {action} this issue")
    return guard


class IssueWorkflowService:

    def __init__(self, store: Optional[IssueStore] = None):
        self.store = store or get_issue_store()

    def get_issue(self, issue_id: str) -> Dict:
        return self.store.get_or_raise(issue_id)

    def list_reporter_issues(self, reporter_id: str, status: Optional[str] = None) -> List[Dict]:
        if status:
            try:
                status = IssueStatus(status).value
            except ValueError:
                raise InvalidInputError(f"Unknown status '{status}'", ["status"])
        return self.store.find_by_reporter(reporter_id, status)

    def officer_update(
        self,
        issue_id: str,
        officer_id: str,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        note: Optional[str] = None
    ) -> Dict:
        """
        Apply an officer's status and/or severity change.

        A status change must be an officer edge of the workflow; severity
        alone may change in any state.

        Raises:
            InvalidInputError: neither status nor severity given
            InvalidTransitionError: status change not allowed from the current state
        """
        if status is None and severity is None:
            raise InvalidInputError("Provide status and/or severity", ["status", "severity"])

        severity_value = getattr(severity, "value", severity)

        if status is None:
            issue = self.store.update_fields(issue_id, {"severity": severity_value})
            logger.info(f"Issue {issue_id} severity set to {severity_value} by officer {officer_id}")
            return issue

        updates = {"severity": severity_value} if severity_value else None
        return self.store.apply_transition(
            issue_id,
            status,
            Actor.OFFICER,
            officer_id,
            updates=updates,
            note=note,
        )

    def verify_resolution(self, issue_id: str, user_id: str) -> Dict:
        """Reporter confirms the fix: awaiting-verification -> resolved."""
        return self.store.apply_transition(
            issue_id,
            IssueStatus.RESOLVED,
            Actor.REPORTER,
            user_id,
            note="Resolution verified by reporter",
            guard=_reporter_only(user_id, "verify the resolution of"),
        )

    def reject_resolution(self, issue_id: str, user_id: str, reason: Optional[str] = None) -> Dict:
        """Reporter says it is not fixed: awaiting-verification -> live."""
        reason = (reason or "").strip() or None
        return self.store.apply_transition(
            issue_id,
            IssueStatus.LIVE,
            Actor.REPORTER,
            user_id,
            updates={
                "last_rejection_reason": reason,
                "reopen_count": firestore.Increment(1),
            },
            note=reason or "Resolution rejected by reporter",
            guard=_reporter_only(user_id, "reject the resolution of"),
        )

    def delete_issue(self, issue_id: str, user_id: str) -> None:
        issue = self.store.get_or_raise(issue_id)
        if issue.get("reporter_id") != user_id:
            raise PermissionDeniedError("Only the reporter can delete this issue")
        self.store.delete(issue_id)


def get_issue_workflow_service() -> IssueWorkflowService:
    return IssueWorkflowService()
