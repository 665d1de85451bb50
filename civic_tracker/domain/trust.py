# SPDX-License-Identifier: Apache-2.0

"""
Trust score calculation and badge awards.

The score is a pure function of a user's verification flags, activity
counters, account age and badges. It is stored for queries but always
recomputed from those inputs, never patched incrementally.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from ..models.base import utc_now
from ..models.entities import User
from ..models.enums import BadgeType
from .errors import DuplicateBadgeError, InvalidBadgeError

logger = logging.getLogger(__name__)

MAX_TRUST_SCORE = 100

EMAIL_VERIFIED_POINTS = 10
PHONE_VERIFIED_POINTS = 15
ID_VERIFIED_POINTS = 25

# (points per item, cap)
ISSUES_CREATED_WEIGHT = (2, 20)
COMMENTS_POSTED_WEIGHT = (0.5, 15)
ISSUES_VOTED_WEIGHT = (0.2, 10)
ACCOUNT_AGE_WEIGHT = (0.1, 10)

BADGE_POINTS = 5


def _capped(count: int, weight) -> float:
    per_item, cap = weight
    return min(count * per_item, cap)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def account_age_days(user: User, now: datetime = None) -> int:
    """Whole days elapsed since the account was created (never negative)."""
    now = now or utc_now()
    return max((now - user.created_at).days, 0)


def compute_trust_score(user: User, now: datetime = None) -> int:
    """
    Compute the trust score for a user.

    Args:
        user: User whose inputs are scored
        now: Reference time for account age

    Returns:
        Score between 0 and 100
    """
    score = 0.0

    if user.is_email_verified:
        score += EMAIL_VERIFIED_POINTS
    if user.is_phone_verified:
        score += PHONE_VERIFIED_POINTS
    if user.is_id_verified:
        score += ID_VERIFIED_POINTS

    score += _capped(len(user.issues_created), ISSUES_CREATED_WEIGHT)
    score += _capped(len(user.comments_posted), COMMENTS_POSTED_WEIGHT)
    score += _capped(len(user.issues_voted_on), ISSUES_VOTED_WEIGHT)
    score += _capped(account_age_days(user, now), ACCOUNT_AGE_WEIGHT)

    score += BADGE_POINTS * len({BadgeType(badge) for badge in user.badges})

    return max(0, min(round_half_up(score), MAX_TRUST_SCORE))


def refresh_trust_score(user: User, now: datetime = None) -> int:
    """Recompute and store the user's trust score."""
    user.trust_score = compute_trust_score(user, now)
    return user.trust_score


def parse_badge(value) -> BadgeType:
    try:
        return BadgeType(value)
    except ValueError:
        allowed = ", ".join(b.value for b in BadgeType)
        raise InvalidBadgeError(
            f"Invalid badge: {value!r}",
            [{"field": "badge", "message": f"Must be one of: {allowed}"}]
        )


def award_badge(user: User, badge, now: datetime = None) -> int:
    """
    Give ``user`` a badge and recompute the trust score.

    Raises:
        InvalidBadgeError: badge is not one of the fixed badge types
        DuplicateBadgeError: user already holds the badge
    """
    badge_type = parse_badge(badge)
    if badge_type.value in user.badges:
        raise DuplicateBadgeError(f"User already has the '{badge_type.value}' badge")

    user.badges.append(badge_type.value)
    user.touch(now)
    score = refresh_trust_score(user, now)

    logger.info(
        "Badge awarded",
        extra={"user_id": user.id, "badge": badge_type.value, "trust_score": score}
    )
    return score


def apply_verification(
    user: User,
    email: Optional[bool] = None,
    phone: Optional[bool] = None,
    identity: Optional[bool] = None,
    now: datetime = None
) -> int:
    """Update verification flags that were provided and recompute the score."""
    if email is not None:
        user.is_email_verified = email
    if phone is not None:
        user.is_phone_verified = phone
    if identity is not None:
        user.is_id_verified = identity

    user.touch(now)
    return refresh_trust_score(user, now)
