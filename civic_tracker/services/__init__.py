# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - persistence, external integrations and orchestration.
"""

from .mongodb import MongoDBService, PaginationResult, get_mongodb_service, close_mongodb_connection
from .repository import EntityRepository
from .redis import RedisService, create_redis_service
from .auth import AuthService, AuthenticationError, TokenValidationError
from .identity import IdentityProvider, IdentityClaims
from .hal import HalFormatter, create_hal_formatter
from .users import UserService
from .issues import IssueService
from .comments import CommentService
from .health import HealthCheckService

__all__ = [
    "MongoDBService",
    "PaginationResult",
    "get_mongodb_service",
    "close_mongodb_connection",
    "EntityRepository",
    "RedisService",
    "create_redis_service",
    "AuthService",
    "AuthenticationError",
    "TokenValidationError",
    "IdentityProvider",
    "IdentityClaims",
    "HalFormatter",
    "create_hal_formatter",
    "UserService",
    "IssueService",
    "CommentService",
    "HealthCheckService"
]
