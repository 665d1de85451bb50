# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the Civic Tracker platform.
"""

import re
from datetime import datetime
from typing import List, Optional
from pydantic import Field, field_validator, model_validator
from .base import BaseEntity, DocumentModel, utc_now
from .enums import (
    Priority,
    IssueStatus,
    StepStatus,
    UserRole,
    BadgeType
)


URL_PATTERN = re.compile(r'^https?://[^\s/$.?#].[^\s]*$')

# Tally attribute holding the count for each priority
PRIORITY_FIELDS = {
    Priority.IMPORTANT: "important",
    Priority.VERY_IMPORTANT: "very_important",
    Priority.URGENT: "urgent",
}


def validate_media_urls(urls: List[str]) -> List[str]:
    """Validate that every media reference is an http(s) URL."""
    for url in urls:
        if not URL_PATTERN.match(url):
            raise ValueError(f'Invalid media URL: {url}')
    return urls


class Coordinates(DocumentModel):
    """Geographic point attached to an issue."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Location(DocumentModel):
    """Issue location: a region reference or the nationwide flag."""

    region_id: Optional[str] = Field(None, alias="region", description="Region reference")
    is_nationwide: bool = Field(default=False, description="Whether the issue affects the whole country")
    coordinates: Optional[Coordinates] = Field(None, description="Optional point location")

    @model_validator(mode='after')
    def validate_scope(self):
        """Nationwide issues carry no region; regional issues require one."""
        if self.is_nationwide and self.region_id:
            raise ValueError('Nationwide issues cannot reference a region')
        if not self.is_nationwide and not self.region_id:
            raise ValueError('Region is required for non-nationwide issues')
        return self


class Ballot(DocumentModel):
    """One user's recorded priority vote on one issue."""

    user_id: str = Field(..., alias="user", description="Voter reference")
    priority: Priority = Field(..., description="Chosen priority")


class Votes(DocumentModel):
    """Per-priority and total vote counts with the ballots behind them."""

    important: int = Field(default=0, ge=0, alias="Important")
    very_important: int = Field(default=0, ge=0, alias="Very Important")
    urgent: int = Field(default=0, ge=0, alias="Urgent")
    total: int = Field(default=0, ge=0)
    ballots: List[Ballot] = Field(default_factory=list)

    def count_for(self, priority) -> int:
        """Number of ballots currently holding ``priority``."""
        return getattr(self, PRIORITY_FIELDS[Priority(priority)])

    def adjust(self, priority, delta: int) -> None:
        """Add ``delta`` to the count of ``priority``."""
        field = PRIORITY_FIELDS[Priority(priority)]
        setattr(self, field, getattr(self, field) + delta)

    def per_priority(self) -> dict:
        """Counts keyed by priority value."""
        return {priority.value: self.count_for(priority) for priority in Priority}

    def find_ballot(self, user_id: str) -> Optional[Ballot]:
        """Return the ballot cast by ``user_id``, if any."""
        for ballot in self.ballots:
            if ballot.user_id == user_id:
                return ballot
        return None


class ResolutionStep(DocumentModel):
    """One logged unit of progress toward resolving an issue."""

    description: str = Field(..., min_length=1, description="What was done or is planned")
    status: StepStatus = Field(default=StepStatus.PENDING, description="Step status")
    date: datetime = Field(default_factory=utc_now, description="Expected or actual date")
    updated_by: str = Field(..., description="User who logged the step")
    created_at: datetime = Field(default_factory=utc_now, description="When the step was appended")

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED


class Issue(BaseEntity):
    """A locally reported problem citizens vote and comment on."""

    title: str = Field(..., min_length=5, max_length=100, description="Issue title")
    description: str = Field(..., min_length=20, description="Issue description")
    location: Location = Field(..., description="Region reference or nationwide flag")
    author_id: str = Field(..., alias="author", description="Reporting user")
    status: IssueStatus = Field(default=IssueStatus.PENDING, description="Lifecycle status")
    votes: Votes = Field(default_factory=Votes, description="Vote tally")
    media_urls: List[str] = Field(default_factory=list, description="Opaque media references")
    comment_ids: List[str] = Field(default_factory=list, alias="comments", description="Comment references")
    subscriber_ids: List[str] = Field(default_factory=list, alias="subscribers", description="Subscribed users")
    response_deadline: Optional[datetime] = Field(None, description="Expected official response time")
    is_escalated: bool = Field(default=False, description="Past deadline and unresolved")
    resolution_steps: List[ResolutionStep] = Field(default_factory=list, description="Resolution ledger")
    last_updated_by: Optional[str] = Field(None, description="User who last changed the issue")

    @field_validator('title', 'description')
    @classmethod
    def strip_text(cls, v):
        """Trim surrounding whitespace."""
        return v.strip()

    @field_validator('media_urls')
    @classmethod
    def validate_media(cls, v):
        return validate_media_urls(v)

    @property
    def is_resolved(self) -> bool:
        return self.status == IssueStatus.RESOLVED

    def is_subscribed(self, user_id: str) -> bool:
        return user_id in self.subscriber_ids


class Comment(BaseEntity):
    """Threaded comment on an issue."""

    content: str = Field(..., min_length=1, max_length=1000, description="Comment text")
    author_id: str = Field(..., alias="author", description="Comment author")
    issue_id: str = Field(..., alias="issue", description="Commented issue")
    parent_comment_id: Optional[str] = Field(None, alias="parentComment", description="Parent comment for replies")
    likes: List[str] = Field(default_factory=list, description="Users who like the comment")
    is_official: bool = Field(default=False, description="Author held an official role when posting")
    media_urls: List[str] = Field(default_factory=list, description="Opaque media references")

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        """Validate comment content."""
        if not v.strip():
            raise ValueError('Comment content cannot be empty')
        return v.strip()

    @field_validator('media_urls')
    @classmethod
    def validate_media(cls, v):
        return validate_media_urls(v)

    @property
    def is_reply(self) -> bool:
        return self.parent_comment_id is not None


class VoteRecord(DocumentModel):
    """Entry in a user's voting history."""

    issue_id: str = Field(..., alias="issue", description="Voted issue")
    priority: Priority = Field(..., description="Priority of the vote")
    created_at: datetime = Field(default_factory=utc_now, description="When the vote was cast")


class User(BaseEntity):
    """Registered citizen, official or staff member."""

    identity_subject: str = Field(..., description="Identity provider subject identifier")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., description="Contact email")
    phone: Optional[str] = Field(None, description="Contact phone")
    region_id: Optional[str] = Field(None, alias="region", description="Home region")
    role: UserRole = Field(default=UserRole.USER, description="Account role")
    badges: List[BadgeType] = Field(default_factory=list, description="Awarded badges")
    trust_score: int = Field(default=0, ge=0, le=100, description="Derived reputation score")
    is_email_verified: bool = Field(default=False)
    is_phone_verified: bool = Field(default=False)
    is_id_verified: bool = Field(default=False)
    profile_picture_url: str = Field(default="")
    bio: str = Field(default="", max_length=500)
    organization: str = Field(default="")
    position: str = Field(default="")
    last_active: datetime = Field(default_factory=utc_now)
    issues_created: List[str] = Field(default_factory=list)
    issues_voted_on: List[VoteRecord] = Field(default_factory=list)
    issues_subscribed: List[str] = Field(default_factory=list)
    comments_posted: List[str] = Field(default_factory=list)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_verified(self) -> bool:
        """Verified once both email and phone are confirmed, or the ID is checked."""
        return (self.is_email_verified and self.is_phone_verified) or self.is_id_verified

    def vote_record_for(self, issue_id: str) -> Optional[VoteRecord]:
        for record in self.issues_voted_on:
            if record.issue_id == issue_id:
                return record
        return None


class Region(BaseEntity):
    """Administrative region an issue or user can reference."""

    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=20)
    is_active: bool = Field(default=True)
