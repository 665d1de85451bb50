# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the Civic Tracker platform.
"""

# Base models
from .base import BaseEntity, DocumentModel, generate_object_id, utc_now

# Enumerations
from .enums import (
    Priority,
    IssueStatus,
    StepStatus,
    UserRole,
    BadgeType
)

# Core entities
from .entities import (
    Coordinates,
    Location,
    Ballot,
    Votes,
    ResolutionStep,
    Issue,
    Comment,
    VoteRecord,
    User,
    Region
)

# Request models
from .requests import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    LocationRequest,
    CreateIssueRequest,
    UpdateIssueRequest,
    VoteRequest,
    ResolutionStepRequest,
    CreateCommentRequest,
    UpdateCommentRequest,
    AwardBadgeRequest,
    UpdateRoleRequest,
    UpdateVerificationRequest,
    PaginationParams,
    IssueListParams,
    TrendingParams,
    UserIssuesParams,
    IssuePath,
    ResolutionStepPath,
    CommentPath,
    UserPath
)

# Response models
from .responses import HalLink, ProblemDetail

__all__ = [
    "BaseEntity",
    "DocumentModel",
    "generate_object_id",
    "utc_now",

    "Priority",
    "IssueStatus",
    "StepStatus",
    "UserRole",
    "BadgeType",

    "Coordinates",
    "Location",
    "Ballot",
    "Votes",
    "ResolutionStep",
    "Issue",
    "Comment",
    "VoteRecord",
    "User",
    "Region",

    "RegisterRequest",
    "LoginRequest",
    "RefreshTokenRequest",
    "LocationRequest",
    "CreateIssueRequest",
    "UpdateIssueRequest",
    "VoteRequest",
    "ResolutionStepRequest",
    "CreateCommentRequest",
    "UpdateCommentRequest",
    "AwardBadgeRequest",
    "UpdateRoleRequest",
    "UpdateVerificationRequest",
    "PaginationParams",
    "IssueListParams",
    "TrendingParams",
    "UserIssuesParams",
    "IssuePath",
    "ResolutionStepPath",
    "CommentPath",
    "UserPath",

    "HalLink",
    "ProblemDetail",
]
