# SPDX-License-Identifier: Apache-2.0

"""
Issue orchestration service.

Loads issues, runs the domain rules against them, persists the primary
issue write with compare-and-update, then applies dependent writes to
users. Dependent-write failures are logged and never surface to callers.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from opentelemetry import trace

from ..domain import issues as issue_rules
from ..domain import resolution, voting
from ..domain.permissions import require_verified
from ..domain.sla import check_escalation
from ..domain.trust import refresh_trust_score
from ..models.entities import Issue, ResolutionStep, User
from .mongodb import MongoDBService, PaginationResult
from .repository import EntityRepository
from .users import COMMENTS, ISSUES, USERS, UserService

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class IssueService:
    """Issue lifecycle operations."""

    def __init__(self, db: MongoDBService, user_service: UserService):
        self.db = db
        self.user_service = user_service
        self.issues = EntityRepository(db, ISSUES, Issue, "issue")

    # Reads

    def get_issue(self, issue_id: str, now: datetime = None) -> Issue:
        """Load an issue, persisting escalation if its deadline has passed."""
        with tracer.start_as_current_span("issue.get", attributes={"issue.id": issue_id}):
            issue = self.issues.get(issue_id)
            if not issue.is_escalated and check_escalation(issue, now):
                issue, _ = self.issues.mutate(issue_id, lambda i: check_escalation(i, now))
                logger.info("Issue escalated on read", extra={"issue_id": issue_id})
            return issue

    def list_issues(self, filters: issue_rules.IssueFilters, page: int = 1, page_size: int = 10,
                    sort_by: str = "createdAt", sort_order: str = "desc",
                    now: datetime = None) -> Tuple[List[Issue], PaginationResult]:
        with tracer.start_as_current_span("issue.list") as span:
            query = issue_rules.build_issue_query(filters)
            sort = issue_rules.build_issue_sort(sort_by, sort_order)
            issues, result = self.issues.paginate(query, page, page_size, sort)
            for issue in issues:
                check_escalation(issue, now)
            span.set_attribute("issue.count", len(issues))
            return issues, result

    def trending(self, limit: int = 10, now: datetime = None) -> List[Issue]:
        with tracer.start_as_current_span("issue.trending"):
            query, sort = issue_rules.trending_query(now)
            issues = self.issues.find_many(query, sort, limit)
            for issue in issues:
                check_escalation(issue, now)
            return issues

    def tackled(self, limit: int = 10) -> List[Issue]:
        with tracer.start_as_current_span("issue.tackled"):
            query, sort = issue_rules.tackled_query()
            return self.issues.find_many(query, sort, limit)

    # Writes

    def create_issue(self, actor: User, title: str, description: str, location: Dict[str, Any],
                     media_urls: Optional[List[str]] = None, now: datetime = None) -> Issue:
        """Report a new issue; the author's history is updated afterwards."""
        with tracer.start_as_current_span("issue.create", attributes={"user.id": actor.id}) as span:
            issue = issue_rules.build_issue(actor, title, description, location, media_urls, now)
            self.user_service.ensure_region_exists(issue.location.region_id)
            self.issues.insert(issue)
            span.set_attribute("issue.id", issue.id)

            logger.info("Issue created", extra={"issue_id": issue.id, "author_id": actor.id})

            self.user_service.apply_dependent_update(
                actor.id, {"$addToSet": {"issuesCreated": issue.id}}, "record created issue"
            )
            return issue

    def update_issue(self, issue_id: str, actor: User, changes: Dict[str, Any],
                     now: datetime = None) -> Issue:
        with tracer.start_as_current_span("issue.update", attributes={"issue.id": issue_id}):
            issue, _ = self.issues.mutate(
                issue_id, lambda i: issue_rules.apply_issue_update(i, actor, changes, now)
            )
            logger.info(
                "Issue updated",
                extra={"issue_id": issue_id, "actor_id": actor.id, "fields": sorted(changes)}
            )
            return issue

    def delete_issue(self, issue_id: str, actor: User) -> None:
        """Delete an issue and its comments, then scrub user references."""
        with tracer.start_as_current_span("issue.delete", attributes={"issue.id": issue_id}):
            issue = self.issues.get(issue_id)
            issue_rules.ensure_can_delete_issue(issue, actor)
            self.issues.delete(issue_id)

            logger.info("Issue deleted", extra={"issue_id": issue_id, "actor_id": actor.id})

            try:
                self.db.delete_many(COMMENTS, {"issue": issue_id})
                self.db.update_many(
                    USERS,
                    {"$or": [
                        {"issuesCreated": issue_id},
                        {"issuesSubscribed": issue_id},
                        {"issuesVotedOn.issue": issue_id},
                        {"commentsPosted": {"$in": issue.comment_ids}}
                    ]},
                    {"$pull": {
                        "issuesCreated": issue_id,
                        "issuesSubscribed": issue_id,
                        "issuesVotedOn": {"issue": issue_id},
                        "commentsPosted": {"$in": issue.comment_ids}
                    }}
                )
            except Exception as e:
                logger.error(
                    "Dependent cleanup after issue deletion failed",
                    extra={"issue_id": issue_id, "error": str(e)}
                )

    def vote(self, issue_id: str, actor: User, priority, now: datetime = None) -> Tuple[Issue, voting.VoteOutcome]:
        """Cast or switch a priority vote, then record it in the voter's history."""
        with tracer.start_as_current_span(
            "issue.vote", attributes={"issue.id": issue_id, "user.id": actor.id}
        ) as span:
            require_verified(actor)
            issue, outcome = self.issues.mutate(
                issue_id, lambda i: voting.cast_vote(i, actor, priority, now)
            )
            span.set_attribute("vote.action", outcome.action.value)

            try:
                self.user_service.users.mutate(
                    actor.id, lambda u: self._record_vote(u, issue_id, outcome, now)
                )
            except Exception as e:
                logger.error(
                    "Failed to record vote in user history",
                    extra={"issue_id": issue_id, "user_id": actor.id, "error": str(e)}
                )

            return issue, outcome

    @staticmethod
    def _record_vote(user: User, issue_id: str, outcome: voting.VoteOutcome, now: datetime = None) -> None:
        voting.record_vote_history(user, issue_id, outcome)
        refresh_trust_score(user, now)

    def toggle_subscription(self, issue_id: str, actor: User) -> Tuple[Issue, bool]:
        with tracer.start_as_current_span("issue.subscribe", attributes={"issue.id": issue_id}):
            issue, subscribed = self.issues.mutate(
                issue_id, lambda i: issue_rules.toggle_subscription(i, actor)
            )
            operator = "$addToSet" if subscribed else "$pull"
            self.user_service.apply_dependent_update(
                actor.id, {operator: {"issuesSubscribed": issue_id}}, "toggle subscription"
            )
            return issue, subscribed

    def add_resolution_step(self, issue_id: str, actor: User, description: str, status=None,
                            date: Optional[datetime] = None, now: datetime = None) -> Tuple[Issue, ResolutionStep]:
        with tracer.start_as_current_span("issue.add_resolution_step", attributes={"issue.id": issue_id}):
            return self.issues.mutate(
                issue_id,
                lambda i: resolution.add_resolution_step(i, description, actor, status, date, now)
            )

    def complete_resolution_step(self, issue_id: str, step_index: int, actor: User,
                                 now: datetime = None) -> Tuple[Issue, ResolutionStep]:
        with tracer.start_as_current_span(
            "issue.complete_resolution_step",
            attributes={"issue.id": issue_id, "step.index": step_index}
        ):
            return self.issues.mutate(
                issue_id,
                lambda i: resolution.complete_resolution_step(i, step_index, actor, now)
            )
