# SPDX-License-Identifier: Apache-2.0

"""
Resolution ledger and issue status state machine.

Pending -> In Progress -> Resolved. Steps are append-only; the only later
change to a step is marking it completed. Privileged overrides can set the
status or escalation flag directly.
"""

import logging
from datetime import datetime
from typing import Optional

from ..models.base import utc_now
from ..models.entities import Issue, ResolutionStep, User
from ..models.enums import IssueStatus, StepStatus
from .errors import ValidationError
from .permissions import Capability, require_capability
from .sla import estimate_deadline, refresh_derived_state

logger = logging.getLogger(__name__)


def parse_step_status(value) -> StepStatus:
    if value is None:
        return StepStatus.PENDING
    try:
        return StepStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid resolution step status: {value!r}",
            [{"field": "status", "message": "Must be one of: pending, completed"}]
        )


def parse_issue_status(value) -> IssueStatus:
    try:
        return IssueStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in IssueStatus)
        raise ValidationError(
            f"Invalid issue status: {value!r}",
            [{"field": "status", "message": f"Must be one of: {allowed}"}]
        )


def _all_steps_completed(issue: Issue) -> bool:
    return all(StepStatus(step.status) == StepStatus.COMPLETED for step in issue.resolution_steps)


def _apply_status(issue: Issue, status: IssueStatus) -> None:
    issue.status = status
    if status == IssueStatus.RESOLVED:
        issue.is_escalated = False


def _advance_on_completion(issue: Issue) -> None:
    """A completed step moves an unresolved issue to Resolved or In Progress."""
    if issue.is_resolved:
        return
    if _all_steps_completed(issue):
        _apply_status(issue, IssueStatus.RESOLVED)
    else:
        _apply_status(issue, IssueStatus.IN_PROGRESS)


def add_resolution_step(
    issue: Issue,
    description: str,
    actor: User,
    status=None,
    date: Optional[datetime] = None,
    now: datetime = None
) -> ResolutionStep:
    """
    Append a resolution step and advance the issue status.

    Args:
        issue: Issue being worked on
        description: What was done or is planned
        actor: Official or admin logging the step
        status: Step status (defaults to pending)
        date: Expected or actual date (defaults to now)
        now: Current time

    Returns:
        The appended step

    Raises:
        PermissionDeniedError: actor cannot resolve issues
        ValidationError: empty description or unknown step status
    """
    require_capability(actor, Capability.RESOLVE_ISSUE)

    description = (description or "").strip()
    if not description:
        raise ValidationError(
            "Resolution step description is required",
            [{"field": "description", "message": "Description cannot be empty"}]
        )
    step_status = parse_step_status(status)
    now = now or utc_now()

    step = ResolutionStep(
        description=description,
        status=step_status,
        date=date or now,
        updated_by=actor.id,
        created_at=now
    )
    issue.resolution_steps.append(step)

    if step_status == StepStatus.COMPLETED:
        _advance_on_completion(issue)
    elif issue.status == IssueStatus.PENDING:
        _apply_status(issue, IssueStatus.IN_PROGRESS)

    issue.last_updated_by = actor.id
    issue.touch(now)
    refresh_derived_state(issue, now)

    logger.info(
        "Resolution step added",
        extra={
            "issue_id": issue.id,
            "actor_id": actor.id,
            "step_status": step_status.value,
            "issue_status": issue.status
        }
    )
    return step


def complete_resolution_step(
    issue: Issue,
    step_index: int,
    actor: User,
    now: datetime = None
) -> ResolutionStep:
    """Mark an existing pending step completed and advance the issue status."""
    require_capability(actor, Capability.RESOLVE_ISSUE)

    if step_index < 0 or step_index >= len(issue.resolution_steps):
        raise ValidationError(
            f"Resolution step index out of range: {step_index}",
            [{"field": "stepIndex", "message": "No resolution step at this position"}]
        )

    step = issue.resolution_steps[step_index]
    if step.is_completed:
        return step

    now = now or utc_now()
    step.status = StepStatus.COMPLETED
    _advance_on_completion(issue)

    issue.last_updated_by = actor.id
    issue.touch(now)
    refresh_derived_state(issue, now)
    return step


def override_status(issue: Issue, status, actor: User, now: datetime = None) -> None:
    """Set the issue status directly. Resolving clears escalation."""
    require_capability(actor, Capability.OVERRIDE_STATUS)
    new_status = parse_issue_status(status)
    now = now or utc_now()

    previous = issue.status
    _apply_status(issue, new_status)
    issue.last_updated_by = actor.id
    issue.touch(now)
    refresh_derived_state(issue, now)

    logger.info(
        "Issue status overridden",
        extra={
            "issue_id": issue.id,
            "actor_id": actor.id,
            "from_status": previous,
            "to_status": new_status.value
        }
    )


def override_escalation(issue: Issue, flag: bool, actor: User, now: datetime = None) -> None:
    """
    Set the escalation flag directly.

    The response window restarts from ``now`` so a cleared flag is not
    immediately re-raised by the next lazy escalation check.
    """
    require_capability(actor, Capability.OVERRIDE_STATUS)
    now = now or utc_now()
    issue.is_escalated = bool(flag)
    issue.response_deadline = estimate_deadline(issue.votes, now)
    issue.last_updated_by = actor.id
    issue.touch(now)
