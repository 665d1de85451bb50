# SPDX-License-Identifier: Apache-2.0

"""
User profile statistics, activity ranking and role changes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..models.base import utc_now
from ..models.entities import User
from ..models.enums import UserRole
from .errors import ValidationError
from .permissions import Capability, require_capability

logger = logging.getLogger(__name__)

ACTIVITY_WINDOW_DAYS = 60

ISSUE_ACTIVITY_POINTS = 5
COMMENT_ACTIVITY_POINTS = 2
VOTE_ACTIVITY_POINTS = 1


@dataclass
class UserStatistics:
    issues_created: int
    votes_cast: int
    comments_posted: int
    issues_subscribed: int

    @property
    def total_activity(self) -> int:
        return self.issues_created + self.votes_cast + self.comments_posted


def user_statistics(user: User) -> UserStatistics:
    """Lifetime activity counters shown on a profile."""
    return UserStatistics(
        issues_created=len(user.issues_created),
        votes_cast=len(user.issues_voted_on),
        comments_posted=len(user.comments_posted),
        issues_subscribed=len(user.issues_subscribed),
    )


def activity_score(issues_created: int, comments_posted: int, votes: int) -> int:
    """Weighted recent activity used to rank trending users."""
    return (issues_created * ISSUE_ACTIVITY_POINTS
            + comments_posted * COMMENT_ACTIVITY_POINTS
            + votes * VOTE_ACTIVITY_POINTS)


def activity_window_start(now: datetime = None) -> datetime:
    now = now or utc_now()
    return now - timedelta(days=ACTIVITY_WINDOW_DAYS)


def recent_vote_count(user: User, since: datetime) -> int:
    return sum(1 for record in user.issues_voted_on if record.created_at >= since)


def change_role(target: User, role, actor: User, now: datetime = None) -> str:
    """
    Set a user's role.

    Comments already posted keep their ``is_official`` flag.

    Returns:
        The previous role value
    """
    require_capability(actor, Capability.MANAGE_ROLES)
    try:
        new_role = UserRole(role)
    except ValueError:
        raise ValidationError(
            f"Invalid role: {role!r}",
            [{"field": "role", "message": f"Must be one of: {', '.join(r.value for r in UserRole)}"}]
        )

    previous = target.role
    target.role = new_role
    target.touch(now)

    logger.info(
        "User role changed",
        extra={
            "user_id": target.id,
            "actor_id": actor.id,
            "from_role": previous,
            "to_role": new_role.value
        }
    )
    return previous
