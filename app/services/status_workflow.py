"""
Status Workflow Engine - issue lifecycle state machine.

DESIGN PRINCIPLES:
- Every status change is an edge of TRANSITIONS, keyed by who fires it
- pending → live | rejected happens once, by validation
- Officers move work forward; only the reporter confirms or reopens
- Invalid transitions rejected programmatically, status left unchanged
- All transitions logged in status_history
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import logging

from app.core.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


class IssueStatus(str, Enum):
    """
    Issue lifecycle:
    PENDING → LIVE → IN_PROGRESS → AWAITING_VERIFICATION → RESOLVED
    with PENDING → REJECTED and AWAITING_VERIFICATION → LIVE (reopen).
    """
    PENDING = "pending"                              # Submitted, validation not finished
    LIVE = "live"                                    # Passed validation, on the public feed
    REJECTED = "rejected"                            # Failed validation (terminal)
    IN_PROGRESS = "in-progress"                      # Officer working on it
    AWAITING_VERIFICATION = "awaiting-verification"  # Officer claims it is fixed
    RESOLVED = "resolved"                            # Reporter confirmed the fix (terminal)


class Actor(str, Enum):
    """Who is allowed to fire a transition."""
    SYSTEM = "system"
    OFFICER = "officer"
    REPORTER = "reporter"


class StatusWorkflowEngine:
    """
    Pure transition logic; persistence lives in IssueStore.
    """

    # {(from_status, to_status): (actor, action)}
    TRANSITIONS: Dict[Tuple[IssueStatus, IssueStatus], Tuple[Actor, str]] = {
        (IssueStatus.PENDING, IssueStatus.LIVE): (Actor.SYSTEM, "validation_passed"),
        (IssueStatus.PENDING, IssueStatus.REJECTED): (Actor.SYSTEM, "validation_failed"),
        (IssueStatus.LIVE, IssueStatus.IN_PROGRESS): (Actor.OFFICER, "start_work"),
        (IssueStatus.IN_PROGRESS, IssueStatus.AWAITING_VERIFICATION): (Actor.OFFICER, "mark_resolved"),
        (IssueStatus.AWAITING_VERIFICATION, IssueStatus.RESOLVED): (Actor.REPORTER, "verify_resolution"),
        (IssueStatus.AWAITING_VERIFICATION, IssueStatus.LIVE): (Actor.REPORTER, "reject_resolution"),
    }

    @staticmethod
    def _label(value) -> str:
        return value.value if isinstance(value, Enum) else str(value)

    @staticmethod
    def _coerce(value) -> Optional[IssueStatus]:
        try:
            return IssueStatus(value)
        except ValueError:
            return None

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str, actor: Optional[Actor] = None) -> bool:
        """
        Check if a status transition is an edge of the table.

        When actor is given, the edge must also belong to that actor.
        Same-status requests are not edges.
        """
        from_enum = cls._coerce(from_status)
        to_enum = cls._coerce(to_status)
        if from_enum is None or to_enum is None:
            return False

        edge = cls.TRANSITIONS.get((from_enum, to_enum))
        if edge is None:
            return False
        return actor is None or edge[0] == Actor(actor)

    @classmethod
    def get_allowed_transitions(cls, current_status: str, actor: Optional[Actor] = None) -> List[str]:
        """List of statuses reachable from current_status (optionally for one actor)."""
        current_enum = cls._coerce(current_status)
        if current_enum is None:
            return []
        return [
            to_status.value
            for (from_status, to_status), (edge_actor, _) in cls.TRANSITIONS.items()
            if from_status == current_enum and (actor is None or edge_actor == Actor(actor))
        ]

    @classmethod
    def action_for(cls, from_status: str, to_status: str) -> Optional[str]:
        edge = cls.TRANSITIONS.get((cls._coerce(from_status), cls._coerce(to_status)))
        return edge[1] if edge else None

    @classmethod
    def is_publicly_visible(cls, status: str) -> bool:
        return cls._coerce(status) == IssueStatus.LIVE

    @classmethod
    def create_status_history_entry(
        cls,
        from_status: str,
        to_status: str,
        actor: Actor,
        changed_by: str,
        note: Optional[str] = None
    ) -> Dict:
        """
        Create a status history entry for the audit trail.

        The timestamp is client-side: Firestore rejects SERVER_TIMESTAMP
        inside array values.
        """
        return {
            "from": cls._label(from_status) if from_status else "",
            "to": cls._label(to_status),
            "actor": Actor(actor).value,
            "action": cls.action_for(from_status, to_status) if from_status else "created",
            "changed_by": changed_by,
            "timestamp": datetime.now(timezone.utc),
            "note": note or ""
        }

    @classmethod
    def validate_transition(cls, current_status: str, new_status: str, actor: Actor) -> IssueStatus:
        """
        Validate a requested transition for an actor.

        Returns:
            The target status

        Raises:
            InvalidTransitionError: If the edge does not exist for this actor
        """
        if not cls.is_valid_transition(current_status, new_status, actor):
            allowed = cls.get_allowed_transitions(current_status, actor)
            logger.info(f"Rejected transition {cls._label(current_status)} → {cls._label(new_status)} by {Actor(actor).value}")
            raise InvalidTransitionError(cls._label(current_status), cls._label(new_status), allowed)
        return IssueStatus(new_status)
