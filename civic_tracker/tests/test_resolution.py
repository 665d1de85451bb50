# SPDX-License-Identifier: Apache-2.0

"""
Tests for the resolution ledger and status overrides.
"""

import pytest
from datetime import timedelta

from civic_tracker.domain.errors import PermissionDeniedError, ValidationError
from civic_tracker.domain.resolution import (
    add_resolution_step,
    complete_resolution_step,
    override_escalation,
    override_status
)
from civic_tracker.domain.sla import check_escalation
from civic_tracker.models.enums import IssueStatus, StepStatus


class TestResolutionSteps:
    """Appending and completing resolution steps."""

    def test_pending_step_moves_issue_in_progress(self, issue, official, now):
        step = add_resolution_step(issue, "Crew scheduled", official, now=now)

        assert step.status == StepStatus.PENDING.value
        assert step.updated_by == official.id
        assert step.date == now
        assert issue.status == IssueStatus.IN_PROGRESS.value
        assert issue.last_updated_by == official.id

    def test_two_step_completion(self, issue, official, now):
        add_resolution_step(issue, "Inspect the lamp", official, now=now)
        add_resolution_step(issue, "Replace the bulb", official, now=now)

        complete_resolution_step(issue, 0, official, now)
        assert issue.status == IssueStatus.IN_PROGRESS.value

        complete_resolution_step(issue, 1, official, now)
        assert issue.status == IssueStatus.RESOLVED.value

    def test_completed_step_on_empty_ledger_resolves(self, issue, official, now):
        add_resolution_step(issue, "Fixed on site", official, status=StepStatus.COMPLETED, now=now)

        assert issue.status == IssueStatus.RESOLVED.value

    def test_resolution_clears_escalation(self, issue, official, now):
        issue.is_escalated = True

        add_resolution_step(issue, "Fixed on site", official, status="completed", now=now)

        assert issue.is_escalated is False

    def test_regular_user_cannot_add_steps(self, issue, citizen, now):
        with pytest.raises(PermissionDeniedError):
            add_resolution_step(issue, "I fixed it myself", citizen, now=now)

        assert issue.resolution_steps == []

    def test_moderator_cannot_add_steps(self, issue, moderator, now):
        with pytest.raises(PermissionDeniedError):
            add_resolution_step(issue, "Looks fixed", moderator, now=now)

    def test_blank_description_is_rejected(self, issue, official, now):
        with pytest.raises(ValidationError):
            add_resolution_step(issue, "   ", official, now=now)

        assert issue.resolution_steps == []

    def test_unknown_step_status_is_rejected(self, issue, official, now):
        with pytest.raises(ValidationError):
            add_resolution_step(issue, "Work started", official, status="started", now=now)

    def test_completing_missing_step_is_rejected(self, issue, official, now):
        with pytest.raises(ValidationError):
            complete_resolution_step(issue, 3, official, now)

    def test_completing_twice_is_a_no_op(self, issue, official, now):
        add_resolution_step(issue, "Inspect the lamp", official, now=now)
        complete_resolution_step(issue, 0, official, now)

        step = complete_resolution_step(issue, 0, official, now)

        assert step.status == StepStatus.COMPLETED.value
        assert issue.status == IssueStatus.RESOLVED.value


class TestOverrides:
    """Privileged status and escalation changes."""

    def test_moderator_can_override_status(self, issue, moderator, now):
        override_status(issue, "In Progress", moderator, now)

        assert issue.status == IssueStatus.IN_PROGRESS.value

    def test_user_cannot_override_status(self, issue, citizen, now):
        with pytest.raises(PermissionDeniedError):
            override_status(issue, IssueStatus.RESOLVED, citizen, now)

        assert issue.status == IssueStatus.PENDING.value

    def test_invalid_status_is_rejected(self, issue, admin, now):
        with pytest.raises(ValidationError):
            override_status(issue, "Closed", admin, now)

    def test_clearing_escalation_restarts_deadline(self, issue, official, now):
        issue.response_deadline = now - timedelta(days=2)
        issue.is_escalated = True

        override_escalation(issue, False, official, now)

        assert issue.is_escalated is False
        assert issue.response_deadline == now + timedelta(days=7)
        assert check_escalation(issue, now + timedelta(days=1)) is False
