"""
Vote Service - public upvotes on issues.

Upvotes are a server-side atomic increment, so concurrent votes are never
lost. Per-citizen deduplication is not enforced here.
"""

from app.services.issue_store import IssueStore, get_issue_store
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class VoteService:
    """Service for managing upvotes on issues."""

    def __init__(self, store: Optional[IssueStore] = None):
        self.store = store or get_issue_store()

    def upvote(self, issue_id: str, user_id: Optional[str] = None) -> Dict:
        """
        Add one upvote.

        Returns:
            The updated issue

        Raises:
            IssueNotFoundError: unknown issue
        """
        issue = self.store.increment_upvotes(issue_id)
        logger.info(f"Upvote on issue {issue_id} by {user_id or 'anonymous'} (now {issue.get('upvotes')})")
        return issue


def get_vote_service() -> VoteService:
    return VoteService()
