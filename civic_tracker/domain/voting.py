# SPDX-License-Identifier: Apache-2.0

"""
Vote tally rules.

One ballot per (issue, user). A new ballot grows the tally; a ballot with a
different priority moves one count between buckets; repeating the same
priority is rejected without touching any state.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..models.base import utc_now
from ..models.entities import Ballot, Issue, User, VoteRecord, Votes
from ..models.enums import Priority
from .errors import DuplicateVoteError, ValidationError
from .permissions import require_verified
from .sla import refresh_derived_state

logger = logging.getLogger(__name__)


class VoteAction(str, Enum):
    """What a cast vote did to the tally."""
    CREATED = "created"
    SWITCHED = "switched"


@dataclass
class VoteOutcome:
    """Result of casting a vote, used to apply the voter-history write."""
    action: VoteAction
    priority: Priority
    previous_priority: Optional[Priority] = None
    voted_at: Optional[datetime] = None


def parse_priority(value) -> Priority:
    """Convert a raw priority value, rejecting anything outside the enum."""
    try:
        return Priority(value)
    except ValueError:
        allowed = ", ".join(p.value for p in Priority)
        raise ValidationError(
            f"Invalid priority value: {value!r}",
            [{"field": "priority", "message": f"Must be one of: {allowed}"}]
        )


def check_tally(votes: Votes) -> bool:
    """Tally invariant: total equals the bucket sum and the ballot count."""
    bucket_sum = sum(votes.count_for(priority) for priority in Priority)
    voters = {ballot.user_id for ballot in votes.ballots}
    return votes.total == bucket_sum == len(votes.ballots) == len(voters)


def cast_vote(issue: Issue, user: User, priority, now: datetime = None) -> VoteOutcome:
    """
    Record ``user``'s priority vote on ``issue``.

    Mutates the issue tally and refreshes its response deadline. The voter's
    history is left to the caller, driven by the returned outcome.

    Raises:
        PermissionDeniedError: user is not verified
        ValidationError: priority is not a known value
        DuplicateVoteError: user already voted with the same priority
    """
    require_verified(user)
    priority = parse_priority(priority)
    now = now or utc_now()

    ballot = issue.votes.find_ballot(user.id)

    if ballot is None:
        issue.votes.ballots.append(Ballot(user_id=user.id, priority=priority))
        issue.votes.adjust(priority, 1)
        issue.votes.total += 1
        outcome = VoteOutcome(action=VoteAction.CREATED, priority=priority, voted_at=now)
    else:
        previous = Priority(ballot.priority)
        if previous == priority:
            raise DuplicateVoteError("You have already voted with this priority")

        issue.votes.adjust(previous, -1)
        issue.votes.adjust(priority, 1)
        ballot.priority = priority
        outcome = VoteOutcome(
            action=VoteAction.SWITCHED,
            priority=priority,
            previous_priority=previous,
            voted_at=now
        )

    issue.touch(now)
    refresh_derived_state(issue, now)

    logger.debug(
        "Vote applied to tally",
        extra={
            "issue_id": issue.id,
            "user_id": user.id,
            "action": outcome.action.value,
            "priority": priority.value,
            "total": issue.votes.total
        }
    )
    return outcome


def record_vote_history(user: User, issue_id: str, outcome: VoteOutcome) -> None:
    """Apply a vote outcome to the voter's history in place."""
    record = user.vote_record_for(issue_id)

    if outcome.action == VoteAction.SWITCHED and record is not None:
        record.priority = outcome.priority
        return

    if record is None:
        user.issues_voted_on.append(VoteRecord(
            issue_id=issue_id,
            priority=outcome.priority,
            created_at=outcome.voted_at or utc_now()
        ))
