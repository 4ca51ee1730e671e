"""
Error taxonomy for the issue service.

Route-level handlers in app.main translate these into HTTP responses.
ProviderFailure and StorageFailure never leave the service layer.
"""

from typing import List, Optional


class IssueServiceError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(IssueServiceError):
    """Missing or malformed client input (user-correctable)."""

    status_code = 400

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []


class IssueNotFoundError(IssueServiceError):
    status_code = 404

    def __init__(self, issue_id: str):
        super().__init__(f"Issue {issue_id} not found")
        self.issue_id = issue_id


class InvalidTransitionError(IssueServiceError):
    """Requested status change is not an edge of the workflow table."""

    status_code = 409

    def __init__(self, current_status: str, target_status: str, allowed: Optional[List[str]] = None):
        super().__init__(
            f"Invalid status transition: {current_status} → {target_status}. "
            f"Allowed transitions from {current_status}: {allowed or []}"
        )
        self.current_status = current_status
        self.target_status = target_status
        self.allowed = allowed or []


class PermissionDeniedError(IssueServiceError):
    status_code = 403


class ConcurrentUpdateError(IssueServiceError):
    """The issue kept changing underneath a guarded write."""

    status_code = 409


class ProviderFailure(IssueServiceError):
    """A validation tier could not produce a result (network, auth, parse)."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class AllProvidersFailedError(IssueServiceError):
    """Every registered validation tier failed for one issue."""

    def __init__(self, failures: List[str]):
        super().__init__("All validation providers failed: " + "; ".join(failures))
        self.failures = failures


class StorageFailure(IssueServiceError):
    """Image upload to the storage bucket failed."""
