# SPDX-License-Identifier: Apache-2.0

"""
Comment thread rules: creation, replies, likes and moderation.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..models.base import utc_now
from ..models.entities import Comment, Issue, User
from .errors import InvalidParentError, PermissionDeniedError, ValidationError
from .permissions import Capability, has_capability, is_owner_or_capable, require_verified

logger = logging.getLogger(__name__)


def _field_errors(exc: PydanticValidationError) -> List[dict]:
    return [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]


def build_comment(
    issue: Issue,
    author: User,
    content: str,
    parent: Optional[Comment] = None,
    media_urls: Optional[List[str]] = None,
    now: datetime = None
) -> Comment:
    """
    Create a comment on ``issue`` and link it to the issue.

    The official flag reflects the author's role at creation time and is
    never recomputed. The caller appends the new id to the author's
    ``comments_posted`` as a dependent write.

    Raises:
        PermissionDeniedError: author is not verified
        InvalidParentError: parent belongs to a different issue
        ValidationError: content or media references are malformed
    """
    require_verified(author)

    if parent is not None and parent.issue_id != issue.id:
        raise InvalidParentError(
            "Parent comment belongs to a different issue",
            [{"field": "parentCommentId", "message": "Parent comment must be on the same issue"}]
        )

    now = now or utc_now()
    try:
        comment = Comment(
            content=content,
            author_id=author.id,
            issue_id=issue.id,
            parent_comment_id=parent.id if parent is not None else None,
            is_official=has_capability(author.role, Capability.OFFICIAL_VOICE),
            media_urls=media_urls or [],
            created_at=now,
            updated_at=now
        )
    except PydanticValidationError as e:
        raise ValidationError("Invalid comment", _field_errors(e))

    issue.comment_ids.append(comment.id)
    issue.last_updated_by = author.id
    issue.touch(now)

    logger.debug(
        "Comment created",
        extra={
            "comment_id": comment.id,
            "issue_id": issue.id,
            "author_id": author.id,
            "is_official": comment.is_official,
            "is_reply": comment.is_reply
        }
    )
    return comment


def toggle_like(comment: Comment, user: User) -> bool:
    """Flip the user's like on a comment. Returns True when the user now likes it."""
    if user.id in comment.likes:
        comment.likes.remove(user.id)
        return False
    comment.likes.append(user.id)
    return True


def ensure_can_modify_comment(comment: Comment, actor: User) -> None:
    """Only the author, a moderator or an admin may edit or delete a comment."""
    if not is_owner_or_capable(actor, comment.author_id, Capability.MODERATE_COMMENTS):
        raise PermissionDeniedError("Not authorized to modify this comment")


def update_comment_content(
    comment: Comment,
    actor: User,
    content: Optional[str] = None,
    media_urls: Optional[List[str]] = None,
    now: datetime = None
) -> Comment:
    """Edit a comment's text or media. ``is_official`` is left untouched."""
    ensure_can_modify_comment(comment, actor)

    # Validate on a copy so a bad field leaves the comment unchanged
    candidate = comment.model_copy(deep=True)
    try:
        if content is not None:
            candidate.content = content
        if media_urls is not None:
            candidate.media_urls = media_urls
    except PydanticValidationError as e:
        raise ValidationError("Invalid comment", _field_errors(e))

    comment.content = candidate.content
    comment.media_urls = candidate.media_urls
    comment.touch(now)
    return comment


def attach_comment(issue: Issue, comment: Comment, now: datetime = None) -> None:
    """Reference a newly posted comment from its issue."""
    if comment.id not in issue.comment_ids:
        issue.comment_ids.append(comment.id)
    issue.last_updated_by = comment.author_id
    issue.touch(now)


def detach_comment(issue: Issue, comment: Comment, actor: User) -> None:
    """Remove a deleted comment's reference from its issue."""
    ensure_can_modify_comment(comment, actor)
    if comment.id in issue.comment_ids:
        issue.comment_ids.remove(comment.id)
    issue.last_updated_by = actor.id
    issue.touch()
