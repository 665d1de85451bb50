# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation using Pydantic models.

The decorators validate the JSON body or the query string and pass the
resulting model to the route after any arguments already supplied by outer
decorators (such as the authenticated actor).
"""

from functools import wraps
from flask import request, jsonify, current_app
from typing import Type, Callable, Dict, Any, List
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """
    Format Pydantic validation errors for API response.

    Args:
        validation_error: Pydantic ValidationError

    Returns:
        List of formatted error dictionaries
    """
    errors = []

    for error in validation_error.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field_path,
            "message": error["msg"],
            "type": error["type"]
        })

    return errors


def _validation_failed(detail: str, errors: List[Dict[str, Any]]):
    error_response = current_app.hal_formatter.format_validation_error(detail, request.path, errors)
    return jsonify(error_response), 400


def validate_json_body(model_class: Type[BaseModel]) -> Callable:
    """
    Decorator to validate JSON request body against Pydantic model.

    Args:
        model_class: Pydantic model class for validation

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with tracer.start_as_current_span("validation.validate_json_body") as span:
                span.set_attributes({
                    "validation.model": model_class.__name__,
                    "http.method": request.method,
                    "http.path": request.path
                })

                json_data = request.get_json(silent=True)
                if not isinstance(json_data, dict):
                    span.set_attribute("validation.result", "invalid_json")
                    return _validation_failed(
                        "Request body must be a JSON object",
                        [{"field": "body", "message": "Expected a JSON object", "type": "json_error"}]
                    )

                try:
                    validated_data = model_class.model_validate(json_data)
                except ValidationError as e:
                    span.set_attribute("validation.result", "validation_error")
                    validation_errors = format_validation_errors(e)

                    logger.warning(
                        "Request validation failed",
                        extra={
                            "model": model_class.__name__,
                            "path": request.path,
                            "errors": validation_errors
                        }
                    )
                    return _validation_failed(
                        f"Request validation failed for {model_class.__name__}",
                        validation_errors
                    )

                span.set_attribute("validation.result", "success")
                return f(*args, validated_data, **kwargs)

        return decorated_function
    return decorator


def validate_query_params(model_class: Type[BaseModel]) -> Callable:
    """
    Decorator to validate query parameters against Pydantic model.

    Args:
        model_class: Pydantic model class for validation

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with tracer.start_as_current_span("validation.validate_query_params") as span:
                span.set_attributes({
                    "validation.model": model_class.__name__,
                    "http.path": request.path
                })

                query_data = request.args.to_dict()

                try:
                    validated_params = model_class.model_validate(query_data)
                except ValidationError as e:
                    span.set_attribute("validation.result", "validation_error")
                    validation_errors = format_validation_errors(e)

                    logger.warning(
                        "Query parameter validation failed",
                        extra={
                            "model": model_class.__name__,
                            "path": request.path,
                            "params": query_data,
                            "errors": validation_errors
                        }
                    )
                    return _validation_failed(
                        f"Query parameter validation failed for {model_class.__name__}",
                        validation_errors
                    )

                span.set_attribute("validation.result", "success")
                return f(*args, validated_params, **kwargs)

        return decorated_function
    return decorator
