# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
User endpoints: profiles, activity rankings and administrative changes.
"""

from flask import jsonify, current_app, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..models.entities import User
from ..models.requests import (
    AwardBadgeRequest,
    UpdateRoleRequest,
    UpdateVerificationRequest,
    TrendingParams,
    UserIssuesParams,
    UserPath
)
from ..middleware.auth import require_auth, optional_auth
from ..middleware.validation import validate_json_body, validate_query_params

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

users_tag = Tag(name="Users", description="Citizen profiles, reputation and roles")
users_bp = APIBlueprint(
    'users',
    __name__,
    url_prefix='/api/users',
    abp_tags=[users_tag]
)


@users_bp.get('/trending')
@validate_query_params(TrendingParams)
def trending_users(params: TrendingParams):
    """Most active users over the last 60 days."""
    users = current_app.user_service.trending_users(limit=params.limit)
    return jsonify(current_app.hal_formatter.format_user_list(users, request.path))


@users_bp.get('/subscribed-issues')
@require_auth
@validate_query_params(UserIssuesParams)
def subscribed_issues(actor: User, params: UserIssuesParams):
    """Issues the current user follows."""
    issues, result = current_app.user_service.subscribed_issues(
        actor, params.page, params.page_size, params.status
    )
    return jsonify(current_app.hal_formatter.format_issue_collection(
        issues, result.total, result.page, result.page_size, actor,
        {'status': params.status}, request.path
    ))


@users_bp.get('/<user_id>')
@optional_auth
def get_user_profile(actor, path: UserPath):
    """
    Public profile with activity statistics.

    The trust score is recomputed from the user's current state before it
    is returned.
    """
    user, extra = current_app.user_service.get_profile(path.user_id)
    return jsonify(current_app.hal_formatter.format_user(user, actor, extra))


@users_bp.get('/<user_id>/issues')
@optional_auth
@validate_query_params(UserIssuesParams)
def user_issues(actor, params: UserIssuesParams, path: UserPath):
    """Issues reported by a user, newest first."""
    issues, result = current_app.user_service.user_issues(
        path.user_id, params.page, params.page_size, params.status
    )
    return jsonify(current_app.hal_formatter.format_issue_collection(
        issues, result.total, result.page, result.page_size, actor,
        {'status': params.status}, request.path
    ))


@users_bp.put('/<user_id>/role')
@require_auth
@validate_json_body(UpdateRoleRequest)
def update_role(actor: User, payload: UpdateRoleRequest, path: UserPath):
    """Change a user's role. Admins only."""
    user = current_app.user_service.change_role(path.user_id, actor, payload.role)
    return jsonify(current_app.hal_formatter.format_user(user, actor))


@users_bp.post('/<user_id>/badge')
@require_auth
@validate_json_body(AwardBadgeRequest)
def award_badge(actor: User, payload: AwardBadgeRequest, path: UserPath):
    """Award a badge. Admins only; the trust score is recomputed."""
    user = current_app.user_service.award_badge(path.user_id, actor, payload.badge)
    return jsonify(current_app.hal_formatter.format_user(user, actor))


@users_bp.put('/<user_id>/verification')
@require_auth
@validate_json_body(UpdateVerificationRequest)
def update_verification(actor: User, payload: UpdateVerificationRequest, path: UserPath):
    """Set or clear verification flags. Admins only."""
    user = current_app.user_service.update_verification(
        path.user_id,
        actor,
        email=payload.is_email_verified,
        phone=payload.is_phone_verified,
        identity=payload.is_id_verified
    )
    return jsonify(current_app.hal_formatter.format_user(user, actor))
