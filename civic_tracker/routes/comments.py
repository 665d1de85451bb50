# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Comment endpoints for issue discussion threads.
"""

from flask import jsonify, current_app, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..models.entities import User
from ..models.requests import (
    CreateCommentRequest,
    UpdateCommentRequest,
    IssuePath,
    CommentPath
)
from ..middleware.auth import require_auth, optional_auth
from ..middleware.validation import validate_json_body

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

comments_tag = Tag(name="Comments", description="Threaded discussion on issues")
comments_bp = APIBlueprint(
    'comments',
    __name__,
    url_prefix='/api/comments',
    abp_tags=[comments_tag]
)


@comments_bp.post('')
@require_auth
@validate_json_body(CreateCommentRequest)
def create_comment(actor: User, payload: CreateCommentRequest):
    """
    Post a comment or a reply.

    Requires a verified account. Comments by officials and admins are marked
    official at creation.
    """
    with tracer.start_as_current_span(
        "comments.create_endpoint",
        attributes={"user.id": actor.id, "issue.id": payload.issue_id}
    ):
        comment = current_app.comment_service.create_comment(
            actor,
            payload.issue_id,
            payload.content,
            parent_comment_id=payload.parent_comment_id,
            media_urls=payload.media_urls
        )
        response = jsonify(current_app.hal_formatter.format_comment(comment, actor))
        response.status_code = 201
        response.headers['Location'] = f"/api/comments/{comment.id}"
        return response


@comments_bp.get('/issue/<issue_id>')
@optional_auth
def list_issue_comments(actor, path: IssuePath):
    """All comments on an issue, oldest first."""
    comments = current_app.comment_service.list_for_issue(path.issue_id)
    return jsonify(current_app.hal_formatter.format_comment_list(comments, request.path, actor))


@comments_bp.get('/<comment_id>')
@optional_auth
def get_comment(actor, path: CommentPath):
    comment = current_app.comment_service.get_comment(path.comment_id)
    return jsonify(current_app.hal_formatter.format_comment(comment, actor))


@comments_bp.put('/<comment_id>')
@require_auth
@validate_json_body(UpdateCommentRequest)
def update_comment(actor: User, payload: UpdateCommentRequest, path: CommentPath):
    """Edit a comment. Authors and moderators only."""
    comment = current_app.comment_service.update_comment(path.comment_id, actor, content=payload.content)
    return jsonify(current_app.hal_formatter.format_comment(comment, actor))


@comments_bp.delete('/<comment_id>')
@require_auth
def delete_comment(actor: User, path: CommentPath):
    """Delete a comment. Authors and moderators only."""
    current_app.comment_service.delete_comment(path.comment_id, actor)
    return '', 204


@comments_bp.post('/<comment_id>/like')
@require_auth
def toggle_like(actor: User, path: CommentPath):
    """Like a comment, or remove the like when already given."""
    comment, liked = current_app.comment_service.toggle_like(path.comment_id, actor)

    body = current_app.hal_formatter.format_comment(comment, actor)
    body['liked'] = liked
    return jsonify(body)
