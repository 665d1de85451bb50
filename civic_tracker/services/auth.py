# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT token management.

Users prove their identity to an external identity provider; this service
then issues its own RS256-signed access and refresh tokens carrying the
user id and current role.
"""

import os
import uuid
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace
import logging

from ..models.entities import User

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


def generate_rsa_key_pair(key_size: int = 2048) -> Tuple[str, str]:
    """Generate a PEM encoded RSA key pair."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('utf-8')

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')

    return private_pem, public_pem


class AuthService:
    """
    JWT authentication service with RS256 signing.
    """

    def __init__(self, private_key: Optional[str] = None, public_key: Optional[str] = None):
        """
        Initialize the authentication service.

        Args:
            private_key: RS256 private key for token signing (PEM format)
            public_key: RS256 public key for token verification (PEM format)
        """
        if private_key is None and public_key is None:
            private_key = os.getenv("JWT_PRIVATE_KEY")
            public_key = os.getenv("JWT_PUBLIC_KEY")

        if not private_key or not public_key:
            # Both halves must come from the same pair
            logger.warning("JWT key pair not configured, generating development key pair")
            private_key, public_key = generate_rsa_key_pair()

        # Keys set through environment variables may carry escaped newlines
        self.private_key = private_key.replace("\\n", "\n")
        self.public_key = public_key.replace("\\n", "\n")
        self.algorithm = "RS256"
        self.access_token_expire_minutes = int(os.getenv("JWT_ACCESS_TOKEN_MINUTES", "15"))
        self.refresh_token_expire_days = int(os.getenv("JWT_REFRESH_TOKEN_DAYS", "7"))

    def _encode(self, payload: Dict[str, Any]) -> str:
        return jwt.encode(payload, self.private_key, algorithm=self.algorithm)

    def _access_payload(self, user_id: str, role: str, now: datetime) -> Dict[str, Any]:
        return {
            "sub": user_id,
            "role": role,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
            "type": "access"
        }

    def generate_tokens(self, user: User) -> Dict[str, Any]:
        """
        Generate access and refresh tokens for a user.

        Args:
            user: User entity to generate tokens for

        Returns:
            Dictionary containing access_token, refresh_token, and metadata
        """
        with tracer.start_as_current_span("auth.generate_tokens") as span:
            span.set_attributes({
                "auth.operation": "generate_tokens",
                "user.id": user.id,
                "user.role": user.role
            })

            now = datetime.now(timezone.utc)
            access_payload = self._access_payload(user.id, user.role, now)
            refresh_exp = now + timedelta(days=self.refresh_token_expire_days)
            refresh_payload = {
                "sub": user.id,
                "jti": uuid.uuid4().hex,
                "iat": now,
                "exp": refresh_exp,
                "type": "refresh"
            }

            try:
                access_token = self._encode(access_payload)
                refresh_token = self._encode(refresh_payload)
            except (jwt.PyJWTError, ValueError, TypeError) as e:
                span.set_attribute("auth.tokens_generated", "error")
                logger.error(f"Token generation failed: {str(e)}")
                raise AuthenticationError(f"Failed to generate tokens: {str(e)}")

            span.set_attribute("auth.tokens_generated", "success")
            logger.info(
                "JWT tokens generated successfully",
                extra={
                    "user_id": user.id,
                    "access_expires_at": access_payload["exp"].isoformat(),
                    "refresh_expires_at": refresh_exp.isoformat()
                }
            )

            return {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "token_type": "Bearer",
                "expires_in": self.access_token_expire_minutes * 60,
                "access_expires_at": access_payload["exp"].isoformat(),
                "refresh_expires_at": refresh_exp.isoformat()
            }

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type ("access" or "refresh")

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.public_key,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["sub", "exp", "jti"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type") != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": payload.get("sub")
            })
            logger.debug(
                "Token validated successfully",
                extra={"user_id": payload.get("sub"), "token_type": token_type}
            )
            return payload

    def refresh_access_token(self, refresh_token: str, user: User) -> Dict[str, Any]:
        """
        Generate a new access token using a valid refresh token.

        The role claim is taken from ``user`` so a role change is picked up on
        the next refresh.

        Raises:
            TokenValidationError: If refresh token is invalid or not the user's
        """
        with tracer.start_as_current_span("auth.refresh_access_token") as span:
            span.set_attribute("auth.operation", "refresh_access_token")

            refresh_payload = self.validate_token(refresh_token, "refresh")
            if refresh_payload["sub"] != user.id:
                raise TokenValidationError("Refresh token does not belong to this user")

            now = datetime.now(timezone.utc)
            access_payload = self._access_payload(user.id, user.role, now)

            try:
                access_token = self._encode(access_payload)
            except (jwt.PyJWTError, ValueError, TypeError) as e:
                span.set_attribute("auth.refresh_result", "error")
                logger.error(f"Token refresh failed: {str(e)}")
                raise AuthenticationError(f"Failed to refresh token: {str(e)}")

            span.set_attribute("auth.refresh_result", "success")
            logger.info(
                "Access token refreshed successfully",
                extra={
                    "user_id": user.id,
                    "new_expires_at": access_payload["exp"].isoformat()
                }
            )

            return {
                "access_token": access_token,
                "token_type": "Bearer",
                "expires_in": self.access_token_expire_minutes * 60,
                "expires_at": access_payload["exp"].isoformat()
            }
