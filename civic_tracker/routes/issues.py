# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Issue endpoints: listing, reporting, editing, voting, subscriptions and
the resolution ledger.
"""

from flask import jsonify, current_app, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..domain.issues import IssueFilters
from ..models.entities import User
from ..models.requests import (
    CreateIssueRequest,
    UpdateIssueRequest,
    VoteRequest,
    ResolutionStepRequest,
    IssueListParams,
    TrendingParams,
    IssuePath,
    ResolutionStepPath
)
from ..middleware.auth import require_auth, optional_auth
from ..middleware.validation import validate_json_body, validate_query_params

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

issues_tag = Tag(name="Issues", description="Issue reporting, voting and resolution")
issues_bp = APIBlueprint(
    'issues',
    __name__,
    url_prefix='/api/issues',
    abp_tags=[issues_tag]
)


@issues_bp.get('')
@optional_auth
@validate_query_params(IssueListParams)
def list_issues(actor, params: IssueListParams):
    """
    List issues with filters and pagination.

    Supports filtering by status, region, nationwide scope and a text search
    on title and description, sorted by creation time, update time or votes.
    """
    filters = IssueFilters(
        status=params.status,
        region_id=params.region,
        is_nationwide=params.is_nationwide,
        search=params.search
    )
    issues, result = current_app.issue_service.list_issues(
        filters,
        page=params.page,
        page_size=params.page_size,
        sort_by=params.sort_by,
        sort_order=params.sort_order
    )

    query_params = {
        'status': params.status,
        'region': params.region,
        'isNationwide': params.is_nationwide,
        'search': params.search,
        'sortBy': params.sort_by,
        'sortOrder': params.sort_order
    }
    return jsonify(current_app.hal_formatter.format_issue_collection(
        issues, result.total, result.page, result.page_size, actor, query_params, request.path
    ))


@issues_bp.get('/trending')
@optional_auth
@validate_query_params(TrendingParams)
def trending_issues(actor, params: TrendingParams):
    """Unresolved issues from the last 30 days with the most votes."""
    issues = current_app.issue_service.trending(limit=params.limit)
    return jsonify(current_app.hal_formatter.format_issue_list(issues, request.path, actor))


@issues_bp.get('/tackled')
@optional_auth
@validate_query_params(TrendingParams)
def tackled_issues(actor, params: TrendingParams):
    """Most recently resolved issues."""
    issues = current_app.issue_service.tackled(limit=params.limit)
    return jsonify(current_app.hal_formatter.format_issue_list(issues, request.path, actor))


@issues_bp.get('/<issue_id>')
@optional_auth
def get_issue(actor, path: IssuePath):
    """Issue detail; an overdue issue is escalated as it is read."""
    issue = current_app.issue_service.get_issue(path.issue_id)
    return jsonify(current_app.hal_formatter.format_issue(issue, actor))


@issues_bp.post('')
@require_auth
@validate_json_body(CreateIssueRequest)
def create_issue(actor: User, payload: CreateIssueRequest):
    """Report a new issue. Requires a verified account."""
    with tracer.start_as_current_span("issues.create_endpoint", attributes={"user.id": actor.id}):
        issue = current_app.issue_service.create_issue(
            actor,
            payload.title,
            payload.description,
            payload.location.model_dump(exclude_none=True),
            payload.media_urls
        )
        response = jsonify(current_app.hal_formatter.format_issue(issue, actor))
        response.status_code = 201
        response.headers['Location'] = f"/api/issues/{issue.id}"
        return response


@issues_bp.put('/<issue_id>')
@require_auth
@validate_json_body(UpdateIssueRequest)
def update_issue(actor: User, payload: UpdateIssueRequest, path: IssuePath):
    """
    Edit an issue.

    Authors and editors may change content; status and escalation changes
    need the status override capability.
    """
    changes = payload.model_dump(exclude_unset=True)
    issue = current_app.issue_service.update_issue(path.issue_id, actor, changes)
    return jsonify(current_app.hal_formatter.format_issue(issue, actor))


@issues_bp.delete('/<issue_id>')
@require_auth
def delete_issue(actor: User, path: IssuePath):
    """Delete an issue and its comments."""
    current_app.issue_service.delete_issue(path.issue_id, actor)
    return '', 204


@issues_bp.post('/<issue_id>/vote')
@require_auth
@validate_json_body(VoteRequest)
def vote_on_issue(actor: User, payload: VoteRequest, path: IssuePath):
    """Cast a priority vote or switch an existing one."""
    issue, outcome = current_app.issue_service.vote(path.issue_id, actor, payload.priority)

    body = current_app.hal_formatter.format_issue(issue, actor)
    body['vote'] = {
        'action': outcome.action.value,
        'priority': outcome.priority.value,
        'previousPriority': outcome.previous_priority.value if outcome.previous_priority else None
    }
    return jsonify(body)


@issues_bp.post('/<issue_id>/subscribe')
@require_auth
def toggle_subscription(actor: User, path: IssuePath):
    """Subscribe to an issue, or unsubscribe when already subscribed."""
    issue, subscribed = current_app.issue_service.toggle_subscription(path.issue_id, actor)

    body = current_app.hal_formatter.format_issue(issue, actor)
    body['subscribed'] = subscribed
    return jsonify(body)


@issues_bp.post('/<issue_id>/resolution-step')
@require_auth
@validate_json_body(ResolutionStepRequest)
def add_resolution_step(actor: User, payload: ResolutionStepRequest, path: IssuePath):
    """Log progress toward resolving an issue. Officials and admins only."""
    issue, step = current_app.issue_service.add_resolution_step(
        path.issue_id, actor, payload.description, payload.status, payload.date
    )
    logger.info(
        "Resolution step added",
        extra={"issue_id": issue.id, "actor_id": actor.id, "step_status": step.status}
    )
    response = jsonify(current_app.hal_formatter.format_issue(issue, actor))
    response.status_code = 201
    return response


@issues_bp.post('/<issue_id>/resolution-step/<int:step_index>/complete')
@require_auth
def complete_resolution_step(actor: User, path: ResolutionStepPath):
    """Mark a resolution step completed; the issue resolves once all are done."""
    issue, _ = current_app.issue_service.complete_resolution_step(
        path.issue_id, path.step_index, actor
    )
    return jsonify(current_app.hal_formatter.format_issue(issue, actor))
