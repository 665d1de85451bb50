# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for HAL response formatting utilities.
"""

import pytest

from civic_tracker.models.enums import IssueStatus
from civic_tracker.models.responses import HalLink
from civic_tracker.services.hal import (
    AffordanceLinkBuilder,
    HalLinkBuilder,
    HalResponseBuilder,
    PaginationLinkBuilder,
    create_hal_formatter
)

BASE_URL = "https://api.example.com"


class TestHalLinkBuilder:
    """Test HAL link builder functionality."""

    def test_build_basic_link(self):
        """Test building a basic HAL link."""
        builder = HalLinkBuilder(BASE_URL)

        link = builder.build_link("/api/issues/123")

        assert isinstance(link, HalLink)
        assert link.href == "https://api.example.com/api/issues/123"
        assert link.method == "GET"
        assert link.type is None

    def test_build_action_link(self):
        """Test building an action link."""
        builder = HalLinkBuilder(BASE_URL)

        link = builder.build_action_link("/api/issues/123", "vote")

        assert link.href == "https://api.example.com/api/issues/123/vote"
        assert link.method == "POST"
        assert link.type == "application/json"
        assert link.title == "Vote"

    def test_base_url_normalization(self):
        """Test that base URL is properly normalized."""
        builder = HalLinkBuilder("https://api.example.com/")

        assert builder.build_link("/api/test").href == "https://api.example.com/api/test"


class TestPaginationLinkBuilder:
    """Test pagination link builder functionality."""

    def test_first_page(self):
        builder = PaginationLinkBuilder(BASE_URL)

        links = builder.build_pagination_links("/api/issues", 1, 3, 10, {"status": "Pending", "region": None})

        assert links['self'].href == "https://api.example.com/api/issues?status=Pending&page=1&limit=10"
        assert links['next'].href.endswith("page=2&limit=10")
        assert links['last'].href.endswith("page=3&limit=10")
        assert 'prev' not in links
        assert 'first' not in links

    def test_middle_page(self):
        links = PaginationLinkBuilder(BASE_URL).build_pagination_links("/api/issues", 2, 3, 10)

        assert set(links) == {'self', 'first', 'prev', 'next', 'last'}

    def test_single_page(self):
        links = PaginationLinkBuilder(BASE_URL).build_pagination_links("/api/issues", 1, 1, 10)

        assert set(links) == {'self'}


class TestAffordanceLinkBuilder:
    """Links depend on the actor's capabilities and the resource state."""

    @pytest.fixture
    def builder(self):
        return AffordanceLinkBuilder(BASE_URL)

    def test_anonymous_issue_links(self, builder, issue):
        links = builder.build_issue_affordances(issue, None)

        assert set(links) == {'self', 'collection', 'comments', 'author'}

    def test_author_issue_links(self, builder, issue, citizen):
        links = builder.build_issue_affordances(issue, citizen)

        assert {'vote', 'comment', 'subscribe', 'edit', 'delete'} <= set(links)
        assert 'add_resolution_step' not in links
        assert links['subscribe'].title == "Subscribe"

    def test_unverified_user_gets_no_vote_link(self, builder, issue, unverified_user):
        links = builder.build_issue_affordances(issue, unverified_user)

        assert 'vote' not in links
        assert 'comment' not in links
        assert 'edit' not in links

    def test_official_issue_links(self, builder, issue, official):
        links = builder.build_issue_affordances(issue, official)

        assert 'edit' in links
        assert 'delete' not in links
        assert links['add_resolution_step'].href.endswith(f"/api/issues/{issue.id}/resolution-step")

    def test_resolved_issue_has_no_resolution_link(self, builder, issue, official):
        issue.status = IssueStatus.RESOLVED

        assert 'add_resolution_step' not in builder.build_issue_affordances(issue, official)

    def test_comment_links(self, builder, issue, make_comment, citizen, official, moderator):
        comment = make_comment(issue, citizen, parent_comment_id="abc")

        assert 'parent' in builder.build_comment_affordances(comment, None)
        assert 'edit' not in builder.build_comment_affordances(comment, official)
        assert 'delete' in builder.build_comment_affordances(comment, moderator)

    def test_user_links_for_admin(self, builder, citizen, admin):
        links = builder.build_user_affordances(citizen, admin)

        assert {'change_role', 'award_badge', 'verify'} <= set(links)
        assert links['change_role'].method == "PUT"

    def test_user_links_for_citizen(self, builder, citizen, official):
        links = builder.build_user_affordances(official, citizen)

        assert set(links) == {'self', 'issues'}


class TestHalFormatter:
    """Test high-level formatter output."""

    def test_format_issue(self, issue, citizen):
        formatter = create_hal_formatter(BASE_URL)

        result = formatter.format_issue(issue, citizen)

        assert result['id'] == issue.id
        assert result['author'] == citizen.id
        assert result['votes']['Urgent'] == 0
        assert result['_links']['self']['href'] == f"{BASE_URL}/api/issues/{issue.id}"

    def test_format_user_hides_identity_subject(self, citizen):
        result = create_hal_formatter(BASE_URL).format_user(citizen, extra={"capabilities": []})

        assert 'identitySubject' not in result
        assert result['fullName'] == "Carla Mendes"
        assert result['isVerified'] is True
        assert result['capabilities'] == []

    def test_format_comment(self, issue, make_comment, citizen):
        comment = make_comment(issue, citizen, likes=["u1", "u2"])

        result = create_hal_formatter(BASE_URL).format_comment(comment)

        assert result['likeCount'] == 2
        assert result['isReply'] is False

    def test_collection_response(self, issue):
        formatter = create_hal_formatter(BASE_URL)

        result = formatter.format_issue_collection([issue], total=25, page=1, page_size=10)

        assert result['totalPages'] == 3
        assert result['_embedded']['items'][0]['id'] == issue.id
        assert 'next' in result['_links']

    def test_problem_response(self):
        builder = HalResponseBuilder(BASE_URL)

        result = builder.build_error_response(
            "validation-error", "Validation Error", 400, "Bad input", "/api/issues",
            [{"field": "title", "message": "Too short"}]
        )

        assert result['type'] == "https://api.civic-tracker.org/problems/validation-error"
        assert result['status'] == 400
        assert result['errors'][0]['field'] == "title"
        assert {'help', 'schema'} <= set(result['_links'])

    def test_problem_without_errors_omits_field(self):
        result = create_hal_formatter(BASE_URL).format_not_found_error("Issue not found", "/api/issues/x")

        assert 'errors' not in result
        assert result['status'] == 404
