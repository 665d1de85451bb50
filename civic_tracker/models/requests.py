# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.

Bodies accept both camelCase and snake_case keys.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from .entities import Coordinates, validate_media_urls
from .enums import Priority, IssueStatus, StepStatus, UserRole


class RequestModel(BaseModel):
    """Base model for request bodies."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        str_strip_whitespace=True
    )


class RegisterRequest(RequestModel):
    """Register a user from a verified identity provider token."""

    identity_token: str = Field(..., min_length=1, description="Identity provider ID token")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, description="Defaults to the identity provider email")
    phone: Optional[str] = Field(None, max_length=30)
    region_id: Optional[str] = Field(None, description="Home region")


class LoginRequest(RequestModel):
    """Log in with an identity provider token."""

    identity_token: str = Field(..., min_length=1)


class RefreshTokenRequest(RequestModel):
    """Exchange a refresh token for a new access token."""

    refresh_token: str = Field(..., min_length=1)


class LocationRequest(RequestModel):
    """Location part of an issue submission."""

    region_id: Optional[str] = None
    is_nationwide: bool = False
    coordinates: Optional[Coordinates] = None


class CreateIssueRequest(RequestModel):
    """Request model for submitting an issue."""

    title: str = Field(..., min_length=5, max_length=100, description="Issue title")
    description: str = Field(..., min_length=20, description="Issue description")
    location: LocationRequest
    media_urls: List[str] = Field(default_factory=list)

    @field_validator('media_urls')
    @classmethod
    def validate_media(cls, v):
        return validate_media_urls(v)


class UpdateIssueRequest(RequestModel):
    """Request model for editing an issue; status fields are privileged."""

    title: Optional[str] = Field(None, min_length=5, max_length=100)
    description: Optional[str] = Field(None, min_length=20)
    media_urls: Optional[List[str]] = None
    status: Optional[IssueStatus] = None
    is_escalated: Optional[bool] = None

    @field_validator('media_urls')
    @classmethod
    def validate_media(cls, v):
        if v is None:
            return v
        return validate_media_urls(v)


class VoteRequest(RequestModel):
    """Cast or switch a priority vote."""

    priority: Priority


class ResolutionStepRequest(RequestModel):
    """Append a resolution step to an issue."""

    description: str = Field(..., min_length=1, max_length=1000)
    status: StepStatus = StepStatus.PENDING
    date: Optional[datetime] = None


class CreateCommentRequest(RequestModel):
    """Post a comment or reply."""

    issue_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, max_length=1000)
    parent_comment_id: Optional[str] = None
    media_urls: List[str] = Field(default_factory=list)

    @field_validator('media_urls')
    @classmethod
    def validate_media(cls, v):
        return validate_media_urls(v)


class UpdateCommentRequest(RequestModel):
    """Edit comment content."""

    content: str = Field(..., min_length=1, max_length=1000)


class AwardBadgeRequest(RequestModel):
    """Award a badge; the name is checked against the badge set by the domain."""

    badge: str = Field(..., min_length=1)


class UpdateRoleRequest(RequestModel):
    """Change a user's role."""

    role: UserRole


class UpdateVerificationRequest(RequestModel):
    """Change a user's verification flags."""

    is_email_verified: Optional[bool] = None
    is_phone_verified: Optional[bool] = None
    is_id_verified: Optional[bool] = None


class PaginationParams(RequestModel):
    """Query parameters for paginated listings."""

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100, alias="limit")


class IssueListParams(PaginationParams):
    """Query parameters for the issue listing."""

    status: Optional[IssueStatus] = None
    region: Optional[str] = None
    is_nationwide: Optional[bool] = None
    search: Optional[str] = Field(None, min_length=2)
    sort_by: str = Field(default="createdAt", pattern=r'^(createdAt|updatedAt|votes)$')
    sort_order: str = Field(default="desc", pattern=r'^(asc|desc)$')


class TrendingParams(RequestModel):
    """Query parameters for trending listings."""

    limit: int = Field(default=10, ge=1, le=50)


class UserIssuesParams(PaginationParams):
    """Query parameters for per-user issue listings."""

    status: Optional[IssueStatus] = None


# Path parameters; field names match the URL rule variables

class IssuePath(BaseModel):
    issue_id: str = Field(..., description="Issue ID")


class ResolutionStepPath(BaseModel):
    issue_id: str = Field(..., description="Issue ID")
    step_index: int = Field(..., ge=0, description="Zero-based step position")


class CommentPath(BaseModel):
    comment_id: str = Field(..., description="Comment ID")


class UserPath(BaseModel):
    user_id: str = Field(..., description="User ID")
