# SPDX-License-Identifier: Apache-2.0

"""
Domain error taxonomy.

Every core operation either completes or raises exactly one of these errors
before touching the primary entity. The HTTP layer maps ``status_code`` and
``error_type`` to an RFC 7807 problem response.
"""

from typing import Any, Dict, List, Optional


class CivicError(Exception):
    """Base class for domain errors."""

    status_code = 500
    error_type = "internal-server-error"
    title = "Internal Server Error"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class NotFoundError(CivicError):
    """Issue, comment, user or region is missing."""

    status_code = 404
    error_type = "resource-not-found"
    title = "Resource Not Found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(CivicError, PermissionError):
    """Role, ownership or verification check failed."""

    status_code = 403
    error_type = "insufficient-permissions"
    title = "Insufficient Permissions"


class ValidationError(CivicError, ValueError):
    """Malformed input."""

    status_code = 400
    error_type = "validation-error"
    title = "Validation Error"


class InvalidParentError(ValidationError):
    """Reply parent is missing or belongs to a different issue."""

    error_type = "invalid-parent"


class InvalidBadgeError(ValidationError):
    """Badge name is not one of the fixed badge types."""

    error_type = "invalid-badge"


class ConflictError(CivicError):
    """Request conflicts with the current state of the entity."""

    status_code = 409
    error_type = "resource-conflict"
    title = "Resource Conflict"


class DuplicateVoteError(ConflictError):
    """User already voted on the issue with the same priority."""

    error_type = "duplicate-vote"


class DuplicateBadgeError(ConflictError):
    """User already holds the badge."""

    error_type = "duplicate-badge"


class ConcurrentUpdateError(ConflictError):
    """Compare-and-update kept losing to concurrent writers."""

    error_type = "concurrent-update"
