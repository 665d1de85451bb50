# SPDX-License-Identifier: Apache-2.0

"""
User orchestration service: registration, profiles, roles, badges,
verification and trust score upkeep.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from opentelemetry import trace
from pydantic import ValidationError as PydanticValidationError

from ..domain import trust
from ..domain.errors import ConflictError, NotFoundError, ValidationError
from ..domain.issues import IssueFilters, build_issue_query
from ..domain.permissions import Capability, require_capability
from ..domain.users import (
    activity_score,
    activity_window_start,
    change_role,
    recent_vote_count,
    user_statistics
)
from ..models.base import utc_now
from ..models.entities import Issue, Region, User
from .identity import IdentityClaims
from .mongodb import MongoDBService
from .repository import EntityRepository

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

USERS = "users"
ISSUES = "issues"
COMMENTS = "comments"
REGIONS = "regions"


class UserService:
    """Reads and writes user documents."""

    def __init__(self, db: MongoDBService):
        self.db = db
        self.users = EntityRepository(db, USERS, User, "user")
        self.issues = EntityRepository(db, ISSUES, Issue, "issue")
        self.regions = EntityRepository(db, REGIONS, Region, "region")

    def get_user(self, user_id: str) -> User:
        return self.users.get(user_id)

    def find_by_subject(self, subject: str) -> Optional[User]:
        return self.users.find_one_by({"identitySubject": subject})

    def ensure_region_exists(self, region_id: Optional[str]) -> None:
        if region_id and self.regions.find(region_id) is None:
            raise ValidationError(
                f"Invalid region: {region_id}",
                [{"field": "regionId", "message": "Region does not exist"}]
            )

    def register(self, claims: IdentityClaims, profile: Dict[str, Any]) -> User:
        """
        Create a user for a verified identity.

        Raises:
            ConflictError: identity or email already registered
            ValidationError: region missing or profile malformed
        """
        with tracer.start_as_current_span("user.register") as span:
            email = profile.get("email") or claims.email
            if not email:
                raise ValidationError(
                    "Email is required",
                    [{"field": "email", "message": "Email is required"}]
                )

            existing = self.users.find_one_by({
                "$or": [{"identitySubject": claims.subject}, {"email": email.lower()}]
            })
            if existing is not None:
                raise ConflictError("User already exists")

            self.ensure_region_exists(profile.get("region_id"))

            try:
                user = User(
                    identity_subject=claims.subject,
                    first_name=profile["first_name"],
                    last_name=profile["last_name"],
                    email=email,
                    phone=profile.get("phone"),
                    region_id=profile.get("region_id"),
                    is_email_verified=claims.email_verified
                )
            except PydanticValidationError as e:
                raise ValidationError("Invalid profile", [
                    {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ])
            trust.refresh_trust_score(user)
            self.users.insert(user)

            span.set_attribute("user.id", user.id)
            logger.info("User registered", extra={"user_id": user.id})
            return user

    def login(self, claims: IdentityClaims) -> User:
        """Find the user for an identity and mark them active."""
        with tracer.start_as_current_span("user.login"):
            user = self.find_by_subject(claims.subject)
            if user is None:
                raise NotFoundError("user", claims.subject)

            user.last_active = utc_now()
            self.db.update_one(USERS, user.id, {"$set": {"lastActive": user.last_active}})
            return user

    # Trust score upkeep

    def refresh_trust_score(self, user_id: str) -> Optional[User]:
        """Recompute a user's trust score from committed state."""
        user, _ = self.users.mutate(user_id, trust.refresh_trust_score)
        return user

    def apply_dependent_update(self, user_id: str, update: Dict[str, Any], reason: str) -> None:
        """
        Apply an atomic list update to a user after a primary write succeeded,
        then refresh their trust score. Failures are logged, never raised.
        """
        try:
            self.db.update_one(USERS, user_id, update)
            self.refresh_trust_score(user_id)
        except Exception as e:
            logger.error(
                f"Dependent user update failed: {reason}",
                extra={"user_id": user_id, "error": str(e)}
            )

    # Profile

    def get_profile(self, user_id: str, now: datetime = None) -> Tuple[User, Dict[str, Any]]:
        """Load a profile with statistics and a freshly computed trust score."""
        with tracer.start_as_current_span("user.get_profile", attributes={"user.id": user_id}):
            user = self.users.get(user_id)
            score = trust.compute_trust_score(user, now)
            if score != user.trust_score:
                user = self.refresh_trust_score(user_id)

            stats = user_statistics(user)
            return user, {
                "statistics": {
                    "issuesCreated": stats.issues_created,
                    "votesCast": stats.votes_cast,
                    "commentsPosted": stats.comments_posted,
                    "issuesSubscribed": stats.issues_subscribed,
                    "totalActivity": stats.total_activity
                }
            }

    def user_issues(self, user_id: str, page: int, page_size: int, status: Optional[str] = None):
        self.users.get(user_id)
        query = build_issue_query(IssueFilters(author_id=user_id, status=status))
        return self.issues.paginate(query, page, page_size, [("createdAt", -1)])

    def subscribed_issues(self, actor: User, page: int, page_size: int, status: Optional[str] = None):
        query = build_issue_query(IssueFilters(subscriber_id=actor.id, status=status))
        return self.issues.paginate(query, page, page_size, [("updatedAt", -1)])

    def trending_users(self, limit: int = 10, now: datetime = None) -> List[Dict[str, Any]]:
        """Users active in the last 60 days ranked by weighted recent activity."""
        with tracer.start_as_current_span("user.trending", attributes={"limit": limit}):
            since = activity_window_start(now)
            candidates = self.users.find_many(
                {"lastActive": {"$gte": since}},
                sort=[("trustScore", -1)],
                limit=limit
            )

            ranked = []
            for user in candidates:
                issues_created = self.db.count(ISSUES, {"author": user.id, "createdAt": {"$gte": since}})
                comments_posted = self.db.count(COMMENTS, {"author": user.id, "createdAt": {"$gte": since}})
                votes = recent_vote_count(user, since)
                ranked.append({
                    "id": user.id,
                    "fullName": user.full_name,
                    "profilePictureUrl": user.profile_picture_url,
                    "trustScore": user.trust_score,
                    "badges": list(user.badges),
                    "activityScore": activity_score(issues_created, comments_posted, votes),
                    "recentActivity": {
                        "issuesCreated": issues_created,
                        "commentsPosted": comments_posted,
                        "voteCount": votes
                    }
                })

            ranked.sort(key=lambda entry: entry["activityScore"], reverse=True)
            return ranked

    # Administrative changes

    def change_role(self, user_id: str, actor: User, role) -> User:
        with tracer.start_as_current_span("user.change_role", attributes={"user.id": user_id}):
            require_capability(actor, Capability.MANAGE_ROLES)
            user, _ = self.users.mutate(user_id, lambda u: change_role(u, role, actor))
            return user

    def award_badge(self, user_id: str, actor: User, badge) -> User:
        """Award a badge (admin only); the trust score is recomputed in the same write."""
        with tracer.start_as_current_span("user.award_badge", attributes={"user.id": user_id}):
            require_capability(actor, Capability.AWARD_BADGE)
            user, _ = self.users.mutate(user_id, lambda u: trust.award_badge(u, badge))
            return user

    def update_verification(self, user_id: str, actor: User, email: Optional[bool] = None,
                            phone: Optional[bool] = None, identity: Optional[bool] = None) -> User:
        with tracer.start_as_current_span("user.update_verification", attributes={"user.id": user_id}):
            require_capability(actor, Capability.VERIFY_USER)
            user, _ = self.users.mutate(
                user_id,
                lambda u: trust.apply_verification(u, email=email, phone=phone, identity=identity)
            )
            logger.info(
                "User verification updated",
                extra={"user_id": user_id, "actor_id": actor.id, "is_verified": user.is_verified}
            )
            return user
