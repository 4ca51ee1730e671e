"""
Tests for the issue lifecycle state machine
"""
import pytest

from app.core.exceptions import InvalidTransitionError
from app.services.status_workflow import Actor, IssueStatus, StatusWorkflowEngine


class TestTransitionTable:
    """Every edge belongs to exactly one actor."""

    @pytest.mark.parametrize("from_status,to_status,actor", [
        ("pending", "live", Actor.SYSTEM),
        ("pending", "rejected", Actor.SYSTEM),
        ("live", "in-progress", Actor.OFFICER),
        ("in-progress", "awaiting-verification", Actor.OFFICER),
        ("awaiting-verification", "resolved", Actor.REPORTER),
        ("awaiting-verification", "live", Actor.REPORTER),
    ])
    def test_listed_edges_are_valid(self, from_status, to_status, actor):
        assert StatusWorkflowEngine.is_valid_transition(from_status, to_status, actor)

    def test_officer_cannot_fire_reporter_edge(self):
        assert not StatusWorkflowEngine.is_valid_transition("awaiting-verification", "resolved", Actor.OFFICER)

    def test_officer_cannot_publish_pending_issue(self):
        assert not StatusWorkflowEngine.is_valid_transition("pending", "live", Actor.OFFICER)

    def test_skipping_steps_is_rejected(self):
        assert not StatusWorkflowEngine.is_valid_transition("live", "resolved")
        assert not StatusWorkflowEngine.is_valid_transition("live", "awaiting-verification")

    @pytest.mark.parametrize("status", [s.value for s in IssueStatus])
    def test_same_status_is_not_an_edge(self, status):
        assert not StatusWorkflowEngine.is_valid_transition(status, status)

    @pytest.mark.parametrize("status", ["rejected", "resolved"])
    def test_terminal_states_have_no_exits(self, status):
        assert StatusWorkflowEngine.get_allowed_transitions(status) == []

    def test_unknown_status(self):
        assert not StatusWorkflowEngine.is_valid_transition("open", "live")
        assert StatusWorkflowEngine.get_allowed_transitions("open") == []

    def test_allowed_transitions_per_actor(self):
        assert StatusWorkflowEngine.get_allowed_transitions("awaiting-verification", Actor.REPORTER) == [
            "resolved", "live"
        ]
        assert StatusWorkflowEngine.get_allowed_transitions("awaiting-verification", Actor.OFFICER) == []

    def test_only_live_is_public(self):
        assert StatusWorkflowEngine.is_publicly_visible("live")
        assert not StatusWorkflowEngine.is_publicly_visible("in-progress")


class TestValidateTransition:

    def test_returns_target(self):
        assert StatusWorkflowEngine.validate_transition("live", "in-progress", Actor.OFFICER) == IssueStatus.IN_PROGRESS

    def test_accepts_enum_members(self):
        target = StatusWorkflowEngine.validate_transition(IssueStatus.LIVE, IssueStatus.IN_PROGRESS, Actor.OFFICER)
        assert target is IssueStatus.IN_PROGRESS

    def test_invalid_transition_carries_current_status(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            StatusWorkflowEngine.validate_transition(IssueStatus.LIVE, IssueStatus.RESOLVED, Actor.OFFICER)

        assert exc_info.value.current_status == "live"
        assert exc_info.value.target_status == "resolved"
        assert exc_info.value.allowed == ["in-progress"]
        assert exc_info.value.status_code == 409


class TestHistoryEntry:

    def test_transition_entry(self):
        entry = StatusWorkflowEngine.create_status_history_entry(
            "live", IssueStatus.IN_PROGRESS, Actor.OFFICER, "officer-1", note="crew dispatched"
        )
        assert entry["from"] == "live"
        assert entry["to"] == "in-progress"
        assert entry["actor"] == "officer"
        assert entry["action"] == "start_work"
        assert entry["changed_by"] == "officer-1"
        assert entry["note"] == "crew dispatched"
        assert entry["timestamp"].tzinfo is not None

    def test_creation_entry(self):
        entry = StatusWorkflowEngine.create_status_history_entry(None, "pending", Actor.REPORTER, "citizen-1")
        assert entry["from"] == ""
        assert entry["action"] == "created"
