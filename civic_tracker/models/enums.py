# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the Civic Tracker platform.
"""

from enum import Enum


class Priority(str, Enum):
    """Severity category chosen by a voter, ordered from least to most severe."""
    IMPORTANT = "Important"
    VERY_IMPORTANT = "Very Important"
    URGENT = "Urgent"

    @property
    def rank(self) -> int:
        """Position in the severity ordering (0 = least severe)."""
        return list(Priority).index(self)

    @property
    def sla_days(self) -> int:
        """Baseline response days when this priority holds the vote majority."""
        return PRIORITY_SLA_DAYS[self]


PRIORITY_SLA_DAYS = {
    Priority.IMPORTANT: 5,
    Priority.VERY_IMPORTANT: 3,
    Priority.URGENT: 1,
}


class IssueStatus(str, Enum):
    """Issue lifecycle status."""
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class StepStatus(str, Enum):
    """Resolution step status."""
    PENDING = "pending"
    COMPLETED = "completed"


class UserRole(str, Enum):
    """User account roles."""
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"
    OFFICIAL = "official"


class BadgeType(str, Enum):
    """Badges an administrator can award to a user."""
    COMMUNITY_HERO = "Community Hero"
    REGIONAL_ADVOCATE = "Regional Advocate"
    ISSUE_SOLVER = "Issue Solver"
    ACTIVE_VOTER = "Active Voter"
    VERIFIED_RESIDENT = "Verified Resident"
