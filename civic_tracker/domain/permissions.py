# SPDX-License-Identifier: Apache-2.0

"""
Role capability policy.

Roles form a closed set; every permission decision goes through the single
capability table below instead of ad-hoc role membership tests.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from ..models.entities import User
from ..models.enums import UserRole
from .errors import PermissionDeniedError


class Capability(str, Enum):
    """Actions gated by role."""
    EDIT_ANY_ISSUE = "issue:edit_any"
    DELETE_ANY_ISSUE = "issue:delete_any"
    OVERRIDE_STATUS = "issue:override_status"
    RESOLVE_ISSUE = "issue:resolve"
    MODERATE_COMMENTS = "comment:moderate"
    OFFICIAL_VOICE = "comment:official"
    MANAGE_ROLES = "user:manage_roles"
    AWARD_BADGE = "user:award_badge"
    VERIFY_USER = "user:verify"


ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.USER: frozenset(),
    UserRole.MODERATOR: frozenset({
        Capability.EDIT_ANY_ISSUE,
        Capability.OVERRIDE_STATUS,
        Capability.MODERATE_COMMENTS,
    }),
    UserRole.OFFICIAL: frozenset({
        Capability.EDIT_ANY_ISSUE,
        Capability.OVERRIDE_STATUS,
        Capability.RESOLVE_ISSUE,
        Capability.OFFICIAL_VOICE,
    }),
    UserRole.ADMIN: frozenset(Capability),
}


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    missing_capabilities: List[str] = field(default_factory=list)


def capabilities_for(role) -> FrozenSet[Capability]:
    """Capabilities granted to ``role`` (accepts the enum or its value)."""
    return ROLE_CAPABILITIES[UserRole(role)]


def has_capability(role, capability: Capability) -> bool:
    return capability in capabilities_for(role)


def check_capability(actor: User, capability: Capability) -> AuthorizationResult:
    """
    Check if the actor's current role grants a capability.

    Args:
        actor: User performing the action
        capability: Capability to check

    Returns:
        AuthorizationResult indicating if the capability is granted
    """
    if has_capability(actor.role, capability):
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason=f"Role '{actor.role}' lacks capability: {capability.value}",
        missing_capabilities=[capability.value]
    )


def require_capability(actor: User, capability: Capability) -> None:
    """Raise PermissionDeniedError unless the actor holds ``capability``."""
    result = check_capability(actor, capability)
    if not result.allowed:
        raise PermissionDeniedError(result.reason)


def require_verified(user: User) -> None:
    """Voting, commenting and reporting need a verified account."""
    if not user.is_verified:
        raise PermissionDeniedError("Account not verified. Please verify your account.")


def is_owner_or_capable(actor: User, owner_id: str, capability: Capability) -> bool:
    """True when the actor owns the resource or holds ``capability``."""
    return actor.id == owner_id or has_capability(actor.role, capability)


def capability_names(role) -> List[str]:
    """Sorted capability strings for a role, as exposed to clients."""
    return sorted(capability.value for capability in capabilities_for(role))
