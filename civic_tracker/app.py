"""
Civic Tracker API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support,
configures middleware, and wires the services behind the issue, comment,
user and authentication endpoints.
"""

import os
from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .middleware.error_handler import ErrorHandlerMiddleware
from .middleware.auth import AuthMiddleware
from .services.hal import create_hal_formatter
from .services.mongodb import MongoDBService
from .services.redis import RedisService
from .services.auth import AuthService
from .services.identity import IdentityProvider
from .services.users import UserService
from .services.issues import IssueService
from .services.comments import CommentService
from .services.health import HealthCheckService

# OpenAPI info
info = Info(
    title="Civic Tracker API",
    version="1.0.0",
    description="Civic issue reporting, prioritisation and resolution tracking API with HATEOAS Level-3 support"
)

health_tag = Tag(name="Health", description="System health and status")

# API tags for organization
tags = [
    Tag(name="Authentication", description="User registration and token management"),
    Tag(name="Issues", description="Issue reporting, voting and resolution"),
    Tag(name="Comments", description="Threaded discussion on issues"),
    Tag(name="Users", description="Citizen profiles, reputation and roles"),
    health_tag
]


def load_config() -> Dict[str, Any]:
    """Read application settings from the environment."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'DOCS_ENABLED': os.getenv('DOCS_ENABLED', 'true').lower() == 'true',

        # Database configuration
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/civic_tracker_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'civic_tracker_dev'),
        'REDIS_URL': os.getenv('REDIS_URL', 'redis://localhost:6379'),

        # Security configuration
        'JWT_PRIVATE_KEY': os.getenv('JWT_PRIVATE_KEY'),
        'JWT_PUBLIC_KEY': os.getenv('JWT_PUBLIC_KEY'),
        'IDENTITY_PROVIDER_PUBLIC_KEY': os.getenv('IDENTITY_PROVIDER_PUBLIC_KEY'),
        'IDENTITY_PROVIDER_AUDIENCE': os.getenv('IDENTITY_PROVIDER_AUDIENCE'),
        'IDENTITY_PROVIDER_ISSUER': os.getenv('IDENTITY_PROVIDER_ISSUER'),

        # Feature flags
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',

        # API configuration
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'PORT': int(os.getenv('PORT', '5000')),
    }


def create_app(
    config_overrides: Optional[Dict[str, Any]] = None,
    mongodb_service: Optional[MongoDBService] = None,
    redis_service: Optional[RedisService] = None,
    auth_service: Optional[AuthService] = None,
    identity_provider: Optional[IdentityProvider] = None
) -> OpenAPI:
    """
    Build the application.

    Services can be passed in to replace the ones built from configuration.
    """
    config = load_config()
    config.update(config_overrides or {})

    setup_observability(config['ENVIRONMENT'], config['OTEL_ENABLED'])

    app = OpenAPI(__name__, info=info, tags=tags)
    app.config.update(config)

    add_observability_middleware(app, instrument=config['OTEL_ENABLED'])

    # Initialize services
    mongodb_service = mongodb_service or MongoDBService(config['MONGODB_URI'], config['MONGODB_DATABASE'])
    redis_service = redis_service or RedisService(config['REDIS_URL'])
    auth_service = auth_service or AuthService(config['JWT_PRIVATE_KEY'], config['JWT_PUBLIC_KEY'])
    identity_provider = identity_provider or IdentityProvider(
        config['IDENTITY_PROVIDER_PUBLIC_KEY'],
        config['IDENTITY_PROVIDER_AUDIENCE'],
        config['IDENTITY_PROVIDER_ISSUER']
    )

    user_service = UserService(mongodb_service)
    issue_service = IssueService(mongodb_service, user_service)
    comment_service = CommentService(mongodb_service, user_service)
    health_service = HealthCheckService(mongodb_service, redis_service)

    # Initialize middleware
    hal_formatter = create_hal_formatter(config['BASE_URL'])
    ErrorHandlerMiddleware(app, hal_formatter)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.redis_service = redis_service
    app.auth_service = auth_service
    app.identity_provider = identity_provider
    app.user_service = user_service
    app.issue_service = issue_service
    app.comment_service = comment_service
    app.health_service = health_service
    app.hal_formatter = hal_formatter
    app.auth_middleware = AuthMiddleware(auth_service, redis_service, user_service)

    # Register routes
    from .routes.auth import auth_bp
    from .routes.issues import issues_bp
    from .routes.comments import comments_bp
    from .routes.users import users_bp

    app.register_api(auth_bp)
    app.register_api(issues_bp)
    app.register_api(comments_bp)
    app.register_api(users_bp)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Health check with dependency status; 503 when the database is down."""
        health_data = health_service.get_health()
        status_code = 503 if health_data["status"] == "unhealthy" else 200

        health_response = hal_formatter.builder.build_resource_response(
            health_data,
            {'self': hal_formatter.builder.link_builder.build_self_link('/api/healthz')}
        )
        return jsonify(health_response), status_code

    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=application.config['PORT'],
        debug=application.config['DEBUG']
    )
