# SPDX-License-Identifier: Apache-2.0

"""
Tests for the role capability policy.
"""

import pytest

from civic_tracker.domain.errors import PermissionDeniedError
from civic_tracker.domain.permissions import (
    Capability,
    capabilities_for,
    capability_names,
    check_capability,
    has_capability,
    is_owner_or_capable,
    require_capability,
    require_verified
)
from civic_tracker.models.enums import UserRole


class TestCapabilityTable:
    """Role to capability lookup."""

    def test_plain_user_has_no_capabilities(self):
        assert capabilities_for(UserRole.USER) == frozenset()

    def test_admin_has_every_capability(self):
        assert capabilities_for("admin") == frozenset(Capability)

    @pytest.mark.parametrize("role,capability,expected", [
        (UserRole.MODERATOR, Capability.MODERATE_COMMENTS, True),
        (UserRole.MODERATOR, Capability.OVERRIDE_STATUS, True),
        (UserRole.MODERATOR, Capability.RESOLVE_ISSUE, False),
        (UserRole.MODERATOR, Capability.OFFICIAL_VOICE, False),
        (UserRole.OFFICIAL, Capability.RESOLVE_ISSUE, True),
        (UserRole.OFFICIAL, Capability.OFFICIAL_VOICE, True),
        (UserRole.OFFICIAL, Capability.MODERATE_COMMENTS, False),
        (UserRole.OFFICIAL, Capability.DELETE_ANY_ISSUE, False),
        (UserRole.OFFICIAL, Capability.AWARD_BADGE, False),
    ])
    def test_role_capabilities(self, role, capability, expected):
        assert has_capability(role, capability) is expected

    def test_capability_names_are_sorted_strings(self):
        assert capability_names(UserRole.OFFICIAL) == [
            "comment:official",
            "issue:edit_any",
            "issue:override_status",
            "issue:resolve",
        ]

    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValueError):
            capabilities_for("superuser")


class TestChecks:
    """Actor-level checks."""

    def test_check_reports_missing_capability(self, citizen):
        result = check_capability(citizen, Capability.MANAGE_ROLES)

        assert result.allowed is False
        assert result.missing_capabilities == ["user:manage_roles"]

    def test_require_capability_raises(self, moderator):
        with pytest.raises(PermissionDeniedError):
            require_capability(moderator, Capability.AWARD_BADGE)

    def test_require_capability_passes(self, admin):
        require_capability(admin, Capability.AWARD_BADGE)

    def test_require_verified(self, citizen, unverified_user):
        require_verified(citizen)
        with pytest.raises(PermissionDeniedError):
            require_verified(unverified_user)

    @pytest.mark.parametrize("flags,expected", [
        ({"is_email_verified": True}, False),
        ({"is_phone_verified": True}, False),
        ({"is_email_verified": True, "is_phone_verified": True}, True),
        ({"is_id_verified": True}, True),
    ])
    def test_verification_state(self, make_user, flags, expected):
        assert make_user(verified=False, **flags).is_verified is expected

    def test_email_only_user_is_rejected(self, make_user):
        with pytest.raises(PermissionDeniedError):
            require_verified(make_user(verified=False, is_email_verified=True))

    def test_owner_or_capable(self, citizen, make_user, moderator):
        other = make_user()

        assert is_owner_or_capable(citizen, citizen.id, Capability.EDIT_ANY_ISSUE) is True
        assert is_owner_or_capable(other, citizen.id, Capability.EDIT_ANY_ISSUE) is False
        assert is_owner_or_capable(moderator, citizen.id, Capability.EDIT_ANY_ISSUE) is True
