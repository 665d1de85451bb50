# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Authentication endpoints for registration, login, logout and token refresh.

Identity is proven by an identity provider ID token; the API then issues
its own access and refresh tokens.
"""

from flask import request, jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from ..domain.errors import NotFoundError
from ..domain.permissions import capability_names
from ..models.entities import User
from ..models.requests import RegisterRequest, LoginRequest, RefreshTokenRequest
from ..services.auth import AuthenticationError, TokenValidationError
from ..middleware.auth import require_auth
from ..middleware.validation import validate_json_body

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Create API blueprint
auth_tag = Tag(name="Authentication", description="User registration and token management")
auth_bp = APIBlueprint(
    'auth',
    __name__,
    url_prefix='/api/auth',
    abp_tags=[auth_tag]
)


def _session_response(user: User, tokens: dict, status: int = 200):
    body = current_app.hal_formatter.format_user(user, user)
    body['tokens'] = tokens
    response = jsonify(body)
    response.status_code = status
    return response


@auth_bp.post('/register')
@validate_json_body(RegisterRequest)
def register(payload: RegisterRequest):
    """
    Register a new user.

    The identity token is verified with the identity provider; its subject
    becomes the account's identity and its email is used when none is given.
    """
    with tracer.start_as_current_span("auth.register") as span:
        claims = current_app.identity_provider.verify(payload.identity_token)

        profile = payload.model_dump(exclude={"identity_token"})
        user = current_app.user_service.register(claims, profile)
        tokens = current_app.auth_service.generate_tokens(user)

        span.set_attribute("user.id", user.id)
        logger.info("User registered", extra={"user_id": user.id, "ip_address": request.remote_addr})
        return _session_response(user, tokens, 201)


@auth_bp.post('/login')
@validate_json_body(LoginRequest)
def login(payload: LoginRequest):
    """Authenticate with an identity token and return JWT tokens."""
    with tracer.start_as_current_span(
        "auth.login",
        attributes={"operation": "login", "ip_address": request.remote_addr}
    ) as span:
        claims = current_app.identity_provider.verify(payload.identity_token)

        try:
            user = current_app.user_service.login(claims)
        except NotFoundError:
            span.set_status(Status(StatusCode.ERROR, "Unknown identity"))
            logger.warning("Login attempt for unregistered identity", extra={"ip_address": request.remote_addr})
            raise AuthenticationError("No account is registered for this identity")

        tokens = current_app.auth_service.generate_tokens(user)

        span.set_attribute("user.id", user.id)
        span.set_status(Status(StatusCode.OK))
        logger.info("User logged in", extra={"user_id": user.id, "ip_address": request.remote_addr})
        return _session_response(user, tokens)


@auth_bp.post('/refresh')
@validate_json_body(RefreshTokenRequest)
def refresh_token(payload: RefreshTokenRequest):
    """
    Refresh access token using refresh token.

    The new token carries the user's current role.
    """
    with tracer.start_as_current_span("auth.refresh", attributes={"operation": "refresh_token"}) as span:
        auth_service = current_app.auth_service

        refresh_payload = auth_service.validate_token(payload.refresh_token, "refresh")
        if current_app.redis_service.is_token_blocked(refresh_payload["jti"]):
            span.set_status(Status(StatusCode.ERROR, "Token is blocked"))
            logger.warning("Attempt to use blocked refresh token", extra={"token_id": refresh_payload["jti"]})
            raise TokenValidationError("Token has been revoked")

        try:
            user = current_app.user_service.get_user(refresh_payload["sub"])
        except NotFoundError:
            raise TokenValidationError("Token subject no longer exists")

        tokens = auth_service.refresh_access_token(payload.refresh_token, user)
        span.set_attribute("user.id", user.id)
        return jsonify({
            **tokens,
            "_links": {
                "self": {"href": f"{current_app.config['BASE_URL']}/api/auth/refresh", "method": "POST"},
                "me": {"href": f"{current_app.config['BASE_URL']}/api/auth/me"}
            }
        })


@auth_bp.post('/logout')
@require_auth
def logout(actor: User):
    """
    Logout user and revoke tokens.

    The access token is blocklisted until it expires; a refresh token in the
    body is revoked as well.
    """
    with tracer.start_as_current_span("auth.logout", attributes={"user.id": actor.id}):
        redis_service = current_app.redis_service
        token_payload = g.token_payload
        redis_service.add_to_blocklist(token_payload["jti"], int(token_payload["exp"]))

        body = request.get_json(silent=True) or {}
        refresh = body.get("refreshToken") or body.get("refresh_token")
        if refresh:
            try:
                refresh_payload = current_app.auth_service.validate_token(refresh, "refresh")
            except TokenValidationError as e:
                logger.info(f"Refresh token not revoked: {e}", extra={"user_id": actor.id})
            else:
                if refresh_payload["sub"] == actor.id:
                    redis_service.add_to_blocklist(refresh_payload["jti"], int(refresh_payload["exp"]))

        logger.info("User logged out", extra={"user_id": actor.id, "ip_address": request.remote_addr})
        return jsonify({
            "message": "Logged out successfully",
            "_links": {
                "login": {"href": f"{current_app.config['BASE_URL']}/api/auth/login", "method": "POST"}
            }
        })


@auth_bp.get('/me')
@require_auth
def me(actor: User):
    """Current user with the capabilities granted by their role."""
    return jsonify(current_app.hal_formatter.format_user(
        actor, actor, {"capabilities": capability_names(actor.role)}
    ))
