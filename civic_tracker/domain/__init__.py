# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the Civic Tracker platform.

This package contains the business rules of the issue lifecycle and
engagement scoring. Functions operate on in-memory entities, take the
acting user as an explicit argument, and never touch storage.
"""

from .errors import (
    CivicError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    InvalidParentError,
    InvalidBadgeError,
    ConflictError,
    DuplicateVoteError,
    DuplicateBadgeError,
    ConcurrentUpdateError
)
from .permissions import (
    Capability,
    AuthorizationResult,
    capabilities_for,
    has_capability,
    check_capability,
    require_capability,
    require_verified
)
from .voting import VoteAction, VoteOutcome, cast_vote, check_tally, record_vote_history
from .sla import estimate_response_days, estimate_deadline, check_escalation, refresh_derived_state
from .resolution import (
    add_resolution_step,
    complete_resolution_step,
    override_status,
    override_escalation
)
from .comments import build_comment, toggle_like, ensure_can_modify_comment, update_comment_content
from .trust import compute_trust_score, refresh_trust_score, award_badge, apply_verification
from .issues import (
    IssueFilters,
    build_issue,
    apply_issue_update,
    ensure_can_delete_issue,
    toggle_subscription,
    build_issue_query
)
from .users import UserStatistics, user_statistics, activity_score, change_role

__all__ = [
    "CivicError",
    "NotFoundError",
    "PermissionDeniedError",
    "ValidationError",
    "InvalidParentError",
    "InvalidBadgeError",
    "ConflictError",
    "DuplicateVoteError",
    "DuplicateBadgeError",
    "ConcurrentUpdateError",
    "Capability",
    "AuthorizationResult",
    "capabilities_for",
    "has_capability",
    "check_capability",
    "require_capability",
    "require_verified",
    "VoteAction",
    "VoteOutcome",
    "cast_vote",
    "check_tally",
    "record_vote_history",
    "estimate_response_days",
    "estimate_deadline",
    "check_escalation",
    "refresh_derived_state",
    "add_resolution_step",
    "complete_resolution_step",
    "override_status",
    "override_escalation",
    "build_comment",
    "toggle_like",
    "ensure_can_modify_comment",
    "update_comment_content",
    "compute_trust_score",
    "refresh_trust_score",
    "award_badge",
    "apply_verification",
    "IssueFilters",
    "build_issue",
    "apply_issue_update",
    "ensure_can_delete_issue",
    "toggle_subscription",
    "build_issue_query",
    "UserStatistics",
    "user_statistics",
    "activity_score",
    "change_role",
]
