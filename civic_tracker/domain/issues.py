# SPDX-License-Identifier: Apache-2.0

"""
Issue lifecycle helpers: reporting, editing, deletion rights,
subscriptions and listing queries.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..models.base import utc_now
from ..models.entities import Issue, Location, User
from ..models.enums import IssueStatus
from .errors import PermissionDeniedError, ValidationError
from .permissions import Capability, has_capability, is_owner_or_capable, require_verified
from .resolution import override_escalation, override_status, parse_issue_status
from .sla import refresh_derived_state

logger = logging.getLogger(__name__)

TRENDING_WINDOW_DAYS = 30

SORT_FIELDS = {
    "createdAt": "createdAt",
    "updatedAt": "updatedAt",
    "votes": "votes.total",
}


def _field_errors(exc: PydanticValidationError) -> List[dict]:
    return [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]


def build_issue(
    author: User,
    title: str,
    description: str,
    location: Dict[str, Any],
    media_urls: Optional[List[str]] = None,
    now: datetime = None
) -> Issue:
    """
    Create a new issue reported by ``author``.

    The issue starts Pending with an empty tally; its response deadline is
    derived from that tally. The caller appends the id to the author's
    ``issues_created`` as a dependent write.

    Raises:
        PermissionDeniedError: author is not verified
        ValidationError: title, description, location or media are malformed
    """
    require_verified(author)
    now = now or utc_now()

    try:
        issue = Issue(
            title=title,
            description=description,
            location=Location.model_validate(location),
            author_id=author.id,
            media_urls=media_urls or [],
            last_updated_by=author.id,
            created_at=now,
            updated_at=now
        )
    except PydanticValidationError as e:
        raise ValidationError("Invalid issue", _field_errors(e))

    refresh_derived_state(issue, now)

    logger.debug(
        "Issue built",
        extra={"issue_id": issue.id, "author_id": author.id}
    )
    return issue


def ensure_can_edit_issue(issue: Issue, actor: User) -> None:
    if not is_owner_or_capable(actor, issue.author_id, Capability.EDIT_ANY_ISSUE):
        raise PermissionDeniedError("Not authorized to update this issue")


def ensure_can_delete_issue(issue: Issue, actor: User) -> None:
    """Only the author or an admin may delete an issue."""
    if not is_owner_or_capable(actor, issue.author_id, Capability.DELETE_ANY_ISSUE):
        raise PermissionDeniedError("Not authorized to delete this issue")


def apply_issue_update(
    issue: Issue,
    actor: User,
    changes: Dict[str, Any],
    now: datetime = None
) -> Issue:
    """
    Apply an edit to an issue.

    Content fields (title, description, media_urls) are open to the author and
    to editors; ``status`` and ``is_escalated`` need the status override
    capability. All changes are validated before any field is written.
    """
    ensure_can_edit_issue(issue, actor)

    privileged = {key for key in ("status", "is_escalated") if changes.get(key) is not None}
    if privileged and not has_capability(actor.role, Capability.OVERRIDE_STATUS):
        raise PermissionDeniedError("Only officials, moderators and admins can change issue status")
    if changes.get("status") is not None:
        parse_issue_status(changes["status"])

    now = now or utc_now()
    content = {
        key: changes[key]
        for key in ("title", "description", "media_urls")
        if changes.get(key) is not None
    }

    candidate = issue.model_copy(deep=True)
    try:
        for key, value in content.items():
            setattr(candidate, key, value)
    except PydanticValidationError as e:
        raise ValidationError("Invalid issue update", _field_errors(e))

    for key in content:
        setattr(issue, key, getattr(candidate, key))

    if changes.get("status") is not None:
        override_status(issue, changes["status"], actor, now)
    if changes.get("is_escalated") is not None:
        override_escalation(issue, changes["is_escalated"], actor, now)

    issue.last_updated_by = actor.id
    issue.touch(now)
    return issue


def toggle_subscription(issue: Issue, user: User) -> bool:
    """Flip the user's subscription. Returns True when now subscribed."""
    if user.id in issue.subscriber_ids:
        issue.subscriber_ids.remove(user.id)
        return False
    issue.subscriber_ids.append(user.id)
    return True


@dataclass
class IssueFilters:
    """Listing filters accepted by the issue collection."""
    status: Optional[str] = None
    region_id: Optional[str] = None
    is_nationwide: Optional[bool] = None
    search: Optional[str] = None
    author_id: Optional[str] = None
    subscriber_id: Optional[str] = None


def build_issue_query(filters: IssueFilters) -> Dict[str, Any]:
    """Translate listing filters into a MongoDB query on camelCase keys."""
    query: Dict[str, Any] = {}

    if filters.status:
        try:
            query["status"] = IssueStatus(filters.status).value
        except ValueError:
            raise ValidationError(
                f"Invalid issue status: {filters.status!r}",
                [{"field": "status", "message": "Unknown issue status"}]
            )

    if filters.region_id:
        query["location.region"] = filters.region_id

    if filters.is_nationwide is not None:
        query["location.isNationwide"] = filters.is_nationwide

    if filters.author_id:
        query["author"] = filters.author_id

    if filters.subscriber_id:
        query["subscribers"] = filters.subscriber_id

    if filters.search:
        pattern = re.escape(filters.search.strip())
        query["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]

    return query


def build_issue_sort(sort_by: str = "createdAt", sort_order: str = "desc") -> List[Tuple[str, int]]:
    field = SORT_FIELDS.get(sort_by)
    if field is None:
        raise ValidationError(
            f"Invalid sort field: {sort_by!r}",
            [{"field": "sortBy", "message": f"Must be one of: {', '.join(SORT_FIELDS)}"}]
        )
    return [(field, 1 if sort_order == "asc" else -1)]


def trending_query(now: datetime = None) -> Tuple[Dict[str, Any], List[Tuple[str, int]]]:
    """Unresolved issues from the last 30 days, most voted first."""
    now = now or utc_now()
    since = now - timedelta(days=TRENDING_WINDOW_DAYS)
    query = {
        "createdAt": {"$gte": since},
        "status": {"$ne": IssueStatus.RESOLVED.value},
    }
    return query, [("votes.total", -1), ("createdAt", -1)]


def tackled_query() -> Tuple[Dict[str, Any], List[Tuple[str, int]]]:
    """Resolved issues, most recently updated first."""
    return {"status": IssueStatus.RESOLVED.value}, [("updatedAt", -1)]
