# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.

Domain errors carry their own HTTP status and problem type; everything
else is mapped here so routes can let exceptions propagate.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from opentelemetry import trace
import logging

from ..domain.errors import CivicError
from ..services.auth import AuthenticationError, TokenValidationError
from ..services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

HTTP_ERROR_TYPES = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    415: ("unsupported-media-type", "Unsupported Media Type"),
    422: ("validation-error", "Validation Error"),
    503: ("service-unavailable", "Service Unavailable"),
}


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, hal_formatter: HalFormatter):
        self.app = app
        self.hal_formatter = hal_formatter
        self.register_error_handlers()

    @property
    def is_production(self) -> bool:
        return self.app.config.get('ENVIRONMENT') == 'production'

    def register_error_handlers(self):
        """Register error handlers with Flask application."""
        self.app.register_error_handler(CivicError, self.handle_domain_error)
        self.app.register_error_handler(AuthenticationError, self.handle_authentication_error)
        self.app.register_error_handler(TokenValidationError, self.handle_authentication_error)
        self.app.register_error_handler(HTTPException, self.handle_http_error)
        self.app.register_error_handler(Exception, self.handle_unexpected_error)

    def _respond(self, body, status: int):
        response = jsonify(body)
        response.status_code = status
        response.headers['Content-Type'] = 'application/problem+json'
        return response

    def handle_domain_error(self, error: CivicError):
        """Map a domain error to its problem response."""
        with tracer.start_as_current_span("error_handler.domain_error") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "error.class": error.__class__.__name__,
                "http.path": request.path
            })

            logger.warning(
                f"Request rejected: {error.title}",
                extra={
                    "error_type": error.error_type,
                    "error_class": error.__class__.__name__,
                    "status_code": error.status_code,
                    "detail": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            body = self.hal_formatter.format_problem(
                error.error_type,
                error.title,
                error.status_code,
                error.message,
                request.path,
                error.errors
            )
            return self._respond(body, error.status_code)

    def handle_authentication_error(self, error: Exception):
        logger.warning(f"Authentication failed: {error}", extra={"path": request.path})
        body = self.hal_formatter.format_authentication_error(str(error), request.path)
        return self._respond(body, 401)

    def handle_http_error(self, error: HTTPException):
        """Render werkzeug HTTP errors (404 routes, 405 methods, ...) as problems."""
        status = error.code or 500
        error_type, title = HTTP_ERROR_TYPES.get(status, ("http-error", error.name))
        detail = str(error.description) if error.description else title

        log = logger.error if status >= 500 else logger.warning
        log(
            f"HTTP error: {title}",
            extra={"status_code": status, "path": request.path, "method": request.method}
        )

        body = self.hal_formatter.format_problem(error_type, title, status, detail, request.path)
        return self._respond(body, status)

    def handle_unexpected_error(self, error: Exception):
        """
        Handle unexpected exceptions not caught by specific handlers.

        Details are hidden from clients in production.
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if not self.is_production:
                detail = f"{error.__class__.__name__}: {str(error)}"

            body = self.hal_formatter.format_server_error(detail, request.path)
            return self._respond(body, 500)
