# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and actor loading.

The token only proves who the caller is; the actor's role and verification
state are always read from the stored user so capability checks see the
current values.
"""

from functools import wraps
from flask import request, jsonify, g, current_app
from typing import Optional, Dict, Any, Callable, Tuple
from opentelemetry import trace
import logging

from ..domain.errors import NotFoundError
from ..models.entities import User
from ..services.auth import TokenValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthenticationFailed(Exception):
    """Request could not be authenticated."""

    def __init__(self, error_type: str, title: str, detail: str):
        super().__init__(detail)
        self.error_type = error_type
        self.title = title
        self.detail = detail


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, blocklist checking, validation and loading
    the acting user for protected endpoints.
    """

    def __init__(self, auth_service, redis_service, user_service):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
            redis_service: Redis service for token blocklist
            user_service: User service used to load the actor
        """
        self.auth_service = auth_service
        self.redis_service = redis_service
        self.user_service = user_service

    def extract_token_from_request(self) -> Optional[str]:
        """Extract the bearer token from the Authorization header."""
        auth_header = request.headers.get('Authorization', '')
        if not auth_header:
            return None

        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None

        return auth_header

    def is_token_blocked(self, token_payload: Dict[str, Any]) -> bool:
        return self.redis_service.is_token_blocked(token_payload["jti"])

    def authenticate(self, token: str) -> Tuple[User, Dict[str, Any]]:
        """
        Validate an access token and load its user.

        Raises:
            AuthenticationFailed: token invalid, revoked, or user gone
        """
        with tracer.start_as_current_span("auth.middleware.authenticate") as span:
            try:
                token_payload = self.auth_service.validate_token(token, "access")
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                raise AuthenticationFailed("invalid-token", "Invalid Token", str(e))

            if self.is_token_blocked(token_payload):
                span.set_attribute("auth.result", "token_blocked")
                raise AuthenticationFailed("token-revoked", "Token Revoked", "Token has been revoked")

            try:
                actor = self.user_service.get_user(token_payload["sub"])
            except NotFoundError:
                span.set_attribute("auth.result", "unknown_user")
                raise AuthenticationFailed(
                    "invalid-token", "Invalid Token", "Token subject no longer exists"
                )

            span.set_attributes({"auth.result": "success", "user.id": actor.id})
            return actor, token_payload


def _unauthorized(error_type: str, title: str, detail: str):
    body = current_app.hal_formatter.format_problem(error_type, title, 401, detail, request.path)
    response = jsonify(body)
    response.status_code = 401
    response.headers['WWW-Authenticate'] = 'Bearer'
    return response


def require_auth(f: Callable) -> Callable:
    """
    Require a valid access token.

    The loaded user is stored in ``g.actor`` and passed to the route as its
    first positional argument.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_middleware = current_app.auth_middleware

        token = auth_middleware.extract_token_from_request()
        if not token:
            logger.warning("Authentication failed: missing token", extra={"path": request.path})
            return _unauthorized(
                "authentication-required", "Authentication Required", "Missing authorization token"
            )

        try:
            actor, token_payload = auth_middleware.authenticate(token)
        except AuthenticationFailed as e:
            logger.warning(f"Authentication failed: {e.detail}", extra={"path": request.path})
            return _unauthorized(e.error_type, e.title, e.detail)

        g.actor = actor
        g.token_payload = token_payload
        logger.debug("Authentication successful", extra={"user_id": actor.id, "role": actor.role})
        return f(actor, *args, **kwargs)

    return decorated_function


def optional_auth(f: Callable) -> Callable:
    """Pass the actor when a valid token is present, otherwise ``None``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_middleware = current_app.auth_middleware
        actor = None

        token = auth_middleware.extract_token_from_request()
        if token:
            try:
                actor, g.token_payload = auth_middleware.authenticate(token)
            except AuthenticationFailed as e:
                logger.debug(f"Ignoring invalid optional token: {e.detail}")

        g.actor = actor
        return f(actor, *args, **kwargs)

    return decorated_function
