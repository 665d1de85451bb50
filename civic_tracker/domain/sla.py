# SPDX-License-Identifier: Apache-2.0

"""
Response-time estimation and escalation detection.

Both are functions of canonical issue state (vote tally, status, stored
deadline) and are re-run on every mutation that can affect them.
"""

from datetime import datetime, timedelta
from typing import Optional

from ..models.base import utc_now
from ..models.entities import Issue, Votes
from ..models.enums import Priority, IssueStatus

BASELINE_RESPONSE_DAYS = 7
MAJORITY_RATIO = 0.5
MINIMUM_RESPONSE_DAYS = 1

# (vote total threshold, days removed) applied cumulatively
VOLUME_DISCOUNTS = ((100, 1), (500, 1))

# Majority checks run from most to least severe; first match wins
MAJORITY_ORDER = (Priority.URGENT, Priority.VERY_IMPORTANT, Priority.IMPORTANT)


def majority_priority(votes: Votes) -> Optional[Priority]:
    """Priority holding strictly more than half of all ballots, if any."""
    if votes.total == 0:
        return None

    for priority in MAJORITY_ORDER:
        if votes.count_for(priority) > votes.total * MAJORITY_RATIO:
            return priority
    return None


def estimate_response_days(votes: Votes) -> int:
    """
    Number of days officials have to respond given the current tally.

    Args:
        votes: Issue vote tally

    Returns:
        Response window in whole days (never below one)
    """
    majority = majority_priority(votes)
    days = majority.sla_days if majority else BASELINE_RESPONSE_DAYS

    for threshold, reduction in VOLUME_DISCOUNTS:
        if votes.total > threshold:
            days = max(days - reduction, MINIMUM_RESPONSE_DAYS)

    return days


def estimate_deadline(votes: Votes, now: datetime = None) -> datetime:
    """Deadline for an official response counted from ``now``."""
    now = now or utc_now()
    return now + timedelta(days=estimate_response_days(votes))


def check_escalation(issue: Issue, now: datetime = None) -> bool:
    """
    Flag an unresolved issue whose response deadline has passed.

    The flag is never cleared here; only resolution or a privileged
    override resets it.
    """
    now = now or utc_now()
    if (issue.status != IssueStatus.RESOLVED
            and issue.response_deadline is not None
            and now > issue.response_deadline):
        issue.is_escalated = True
    return issue.is_escalated


def refresh_derived_state(issue: Issue, now: datetime = None) -> None:
    """Recompute the response deadline, then re-run escalation detection."""
    now = now or utc_now()
    issue.response_deadline = estimate_deadline(issue.votes, now)
    check_escalation(issue, now)
