# SPDX-License-Identifier: Apache-2.0

"""
Comment orchestration service.

The comment document is the primary write; linking it from the issue and
the author's history are dependent writes applied afterwards.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from opentelemetry import trace

from ..domain import comments as comment_rules
from ..domain.errors import InvalidParentError
from ..models.base import utc_now
from ..models.entities import Comment, Issue, User
from .mongodb import MongoDBService
from .repository import EntityRepository
from .users import COMMENTS, ISSUES, UserService

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class CommentService:
    """Comment thread operations."""

    def __init__(self, db: MongoDBService, user_service: UserService):
        self.db = db
        self.user_service = user_service
        self.comments = EntityRepository(db, COMMENTS, Comment, "comment")
        self.issues = EntityRepository(db, ISSUES, Issue, "issue")

    def get_comment(self, comment_id: str) -> Comment:
        return self.comments.get(comment_id)

    def list_for_issue(self, issue_id: str) -> List[Comment]:
        """All comments on an issue, oldest first."""
        with tracer.start_as_current_span("comment.list", attributes={"issue.id": issue_id}):
            self.issues.get(issue_id)
            return self.comments.find_many({"issue": issue_id}, sort=[("createdAt", 1)])

    def _link_to_issue(self, comment: Comment, now: datetime) -> None:
        try:
            self.issues.mutate(comment.issue_id, lambda i: comment_rules.attach_comment(i, comment, now))
        except Exception as e:
            logger.error(
                "Failed to link comment to issue",
                extra={"issue_id": comment.issue_id, "comment_id": comment.id, "error": str(e)}
            )

    def create_comment(self, actor: User, issue_id: str, content: str,
                       parent_comment_id: Optional[str] = None,
                       media_urls: Optional[List[str]] = None,
                       now: datetime = None) -> Comment:
        """
        Post a comment or reply.

        Raises:
            NotFoundError: issue does not exist
            InvalidParentError: parent missing or on another issue
        """
        with tracer.start_as_current_span(
            "comment.create", attributes={"issue.id": issue_id, "user.id": actor.id}
        ) as span:
            now = now or utc_now()
            issue = self.issues.get(issue_id)

            parent = None
            if parent_comment_id:
                parent = self.comments.find(parent_comment_id)
                if parent is None:
                    raise InvalidParentError(
                        f"Parent comment not found: {parent_comment_id}",
                        [{"field": "parentCommentId", "message": "Parent comment does not exist"}]
                    )

            comment = comment_rules.build_comment(issue, actor, content, parent, media_urls, now)
            self.comments.insert(comment)
            span.set_attribute("comment.id", comment.id)

            logger.info(
                "Comment created",
                extra={"comment_id": comment.id, "issue_id": issue_id, "author_id": actor.id}
            )

            self._link_to_issue(comment, now)
            self.user_service.apply_dependent_update(
                actor.id, {"$addToSet": {"commentsPosted": comment.id}}, "record posted comment"
            )
            return comment

    def update_comment(self, comment_id: str, actor: User, content: Optional[str] = None,
                       media_urls: Optional[List[str]] = None, now: datetime = None) -> Comment:
        with tracer.start_as_current_span("comment.update", attributes={"comment.id": comment_id}):
            comment, _ = self.comments.mutate(
                comment_id,
                lambda c: comment_rules.update_comment_content(c, actor, content, media_urls, now)
            )
            return comment

    def delete_comment(self, comment_id: str, actor: User) -> None:
        with tracer.start_as_current_span("comment.delete", attributes={"comment.id": comment_id}):
            comment = self.comments.get(comment_id)
            comment_rules.ensure_can_modify_comment(comment, actor)
            self.comments.delete(comment_id)

            logger.info("Comment deleted", extra={"comment_id": comment_id, "actor_id": actor.id})

            try:
                self.issues.mutate(comment.issue_id, lambda i: comment_rules.detach_comment(i, comment, actor))
            except Exception as e:
                logger.error(
                    "Failed to unlink comment from issue",
                    extra={"issue_id": comment.issue_id, "comment_id": comment_id, "error": str(e)}
                )

            self.user_service.apply_dependent_update(
                comment.author_id, {"$pull": {"commentsPosted": comment_id}}, "remove deleted comment"
            )

    def toggle_like(self, comment_id: str, actor: User) -> Tuple[Comment, bool]:
        with tracer.start_as_current_span("comment.like", attributes={"comment.id": comment_id}):
            return self.comments.mutate(comment_id, lambda c: comment_rules.toggle_like(c, actor))

