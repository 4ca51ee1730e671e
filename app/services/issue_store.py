"""
Issue store - Firestore persistence for issue documents.

All status changes go through apply_transition(), which reads the current
document, checks the edge with StatusWorkflowEngine, and writes with a
last_update_time precondition. A concurrent writer makes the precondition
fail; the store then re-reads and re-checks against the fresh status.
"""

from firebase_admin import firestore
from google.api_core import exceptions as gexc
from app.config.firebase import get_db
from app.core.exceptions import ConcurrentUpdateError, IssueNotFoundError
from app.services.status_workflow import Actor, IssueStatus, StatusWorkflowEngine
from app.utils.firestore_helpers import snapshot_to_dict, where_filter
from typing import Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class IssueStore:
    """Persistence and query surface for issues."""

    COLLECTION = "issues"
    MAX_WRITE_ATTEMPTS = 3

    def __init__(self, db=None):
        self.db = db if db is not None else get_db()
        self.workflow = StatusWorkflowEngine

    def _collection(self):
        return self.db.collection(self.COLLECTION)

    def _ref(self, issue_id: str):
        return self._collection().document(issue_id)

    def _snapshot(self, issue_id: str):
        snapshot = self._ref(issue_id).get()
        if not snapshot.exists:
            raise IssueNotFoundError(issue_id)
        return snapshot

    # Reads

    def get(self, issue_id: str) -> Optional[Dict]:
        return snapshot_to_dict(self._ref(issue_id).get())

    def get_or_raise(self, issue_id: str) -> Dict:
        issue = self.get(issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)
        return issue

    def find_by_reporter(self, reporter_id: str, status: Optional[str] = None) -> List[Dict]:
        query = where_filter(self._collection(), "reporter_id", "==", reporter_id)
        if status:
            query = where_filter(query, "status", "==", status)
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        return [snapshot_to_dict(doc) for doc in query.stream()]

    def find_live(
        self,
        category: Optional[str] = None,
        lat_range: Optional[tuple] = None,
        newest_first: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict]:
        """
        Live issues, optionally filtered by category and a latitude band.

        The latitude band narrows proximity queries; callers still compute
        exact distances.
        """
        query = where_filter(self._collection(), "status", "==", IssueStatus.LIVE.value)
        if category:
            query = where_filter(query, "category", "==", category)
        if lat_range is not None:
            query = where_filter(query, "location.lat", ">=", lat_range[0])
            query = where_filter(query, "location.lat", "<=", lat_range[1])
        if newest_first:
            query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        if limit:
            query = query.limit(limit)
        return [snapshot_to_dict(doc) for doc in query.stream()]

    # Writes

    def create(self, issue_data: Dict) -> Dict:
        """Store a new issue and return it as persisted (with server timestamps)."""
        doc_ref = self._collection().document()
        payload = dict(issue_data)
        payload["id"] = doc_ref.id
        payload["created_at"] = firestore.SERVER_TIMESTAMP
        payload["updated_at"] = firestore.SERVER_TIMESTAMP

        try:
            doc_ref.set(payload)
        except Exception as e:
            logger.error(f"Failed to save issue to Firestore: {e}", exc_info=True)
            raise

        logger.info(f"Issue saved to Firestore: {doc_ref.id}")
        return snapshot_to_dict(doc_ref.get())

    def apply_transition(
        self,
        issue_id: str,
        new_status: IssueStatus,
        actor: Actor,
        changed_by: str,
        updates: Optional[Dict] = None,
        note: Optional[str] = None,
        guard: Optional[Callable[[Dict], None]] = None
    ) -> Dict:
        """
        Move an issue to new_status if the edge is legal for actor.

        Args:
            issue_id: Firestore document ID
            new_status: Target status
            actor: Who fires the transition
            changed_by: User id (or "system") recorded in status_history
            updates: Extra fields written together with the status
            note: Optional note for status_history
            guard: Called with the current document before the edge check;
                raises to veto (e.g. reporter ownership)

        Raises:
            IssueNotFoundError, InvalidTransitionError, ConcurrentUpdateError
            (and whatever guard raises)
        """
        for attempt in range(1, self.MAX_WRITE_ATTEMPTS + 1):
            snapshot = self._snapshot(issue_id)
            current = snapshot.to_dict()
            if guard is not None:
                guard(current)

            current_status = current.get("status")
            target = self.workflow.validate_transition(current_status, new_status, actor)

            history = list(current.get("status_history") or [])
            history.append(self.workflow.create_status_history_entry(
                from_status=current_status,
                to_status=target,
                actor=actor,
                changed_by=changed_by,
                note=note
            ))

            payload = dict(updates or {})
            payload["status"] = target.value
            payload["status_history"] = history
            payload["updated_at"] = firestore.SERVER_TIMESTAMP

            try:
                self._ref(issue_id).update(
                    payload,
                    option=self.db.write_option(last_update_time=snapshot.update_time)
                )
            except gexc.FailedPrecondition:
                logger.warning(
                    f"Issue {issue_id} changed during {current_status} → {target.value} "
                    f"(attempt {attempt}/{self.MAX_WRITE_ATTEMPTS}), re-checking"
                )
                continue

            logger.info(f"✅ Issue {issue_id}: {current_status} → {target.value} by {Actor(actor).value}")
            return self.get_or_raise(issue_id)

        raise ConcurrentUpdateError(f"Issue {issue_id} is being modified concurrently, please retry")

    def update_if_status(self, issue_id: str, expected_status: IssueStatus, updates: Dict) -> bool:
        """
        Write fields only while the issue is still in expected_status.

        Returns:
            True if written, False if the status had already moved on
        """
        for _ in range(self.MAX_WRITE_ATTEMPTS):
            snapshot = self._snapshot(issue_id)
            if snapshot.to_dict().get("status") != IssueStatus(expected_status).value:
                return False

            payload = dict(updates)
            payload["updated_at"] = firestore.SERVER_TIMESTAMP
            try:
                self._ref(issue_id).update(
                    payload,
                    option=self.db.write_option(last_update_time=snapshot.update_time)
                )
                return True
            except gexc.FailedPrecondition:
                continue

        raise ConcurrentUpdateError(f"Issue {issue_id} is being modified concurrently, please retry")

    def update_fields(self, issue_id: str, updates: Dict) -> Dict:
        """Last-writer-wins field update for non-status fields (e.g. severity)."""
        if "status" in updates:
            raise ValueError("status must be changed through apply_transition()")

        payload = dict(updates)
        payload["updated_at"] = firestore.SERVER_TIMESTAMP
        try:
            self._ref(issue_id).update(payload)
        except gexc.NotFound:
            raise IssueNotFoundError(issue_id)
        return self.get_or_raise(issue_id)

    def increment_upvotes(self, issue_id: str, amount: int = 1) -> Dict:
        """Atomic server-side increment of the upvote counter."""
        try:
            self._ref(issue_id).update({
                "upvotes": firestore.Increment(amount),
                "updated_at": firestore.SERVER_TIMESTAMP
            })
        except gexc.NotFound:
            raise IssueNotFoundError(issue_id)
        return self.get_or_raise(issue_id)

    def delete(self, issue_id: str) -> None:
        self._snapshot(issue_id)
        self._ref(issue_id).delete()
        logger.info(f"Issue {issue_id} deleted")


def get_issue_store() -> IssueStore:
    """Store bound to the current Firestore client."""
    return IssueStore(get_db())
