# SPDX-License-Identifier: Apache-2.0

"""
External identity provider verification.

Registration and login present an ID token issued by the identity provider.
Only the token's subject, email and email-verified claim are used.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional
import jwt
from opentelemetry import trace

from .auth import AuthenticationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


@dataclass
class IdentityClaims:
    """Verified identity asserted by the provider."""
    subject: str
    email: Optional[str] = None
    email_verified: bool = False


class IdentityProvider:
    """Verifies RS256 ID tokens against the provider's public key."""

    def __init__(self, public_key: Optional[str] = None, audience: Optional[str] = None,
                 issuer: Optional[str] = None):
        self.public_key = (public_key or os.getenv("IDENTITY_PROVIDER_PUBLIC_KEY") or "").replace("\\n", "\n")
        self.audience = audience or os.getenv("IDENTITY_PROVIDER_AUDIENCE")
        self.issuer = issuer or os.getenv("IDENTITY_PROVIDER_ISSUER")
        self.algorithms = ["RS256"]

        if not self.public_key:
            logger.warning("IDENTITY_PROVIDER_PUBLIC_KEY not configured; identity tokens will be rejected")

    def verify(self, id_token: str) -> IdentityClaims:
        """
        Verify an ID token and return its claims.

        Raises:
            AuthenticationError: token is missing, invalid, expired or the
                provider is not configured
        """
        with tracer.start_as_current_span("identity.verify") as span:
            if not id_token:
                raise AuthenticationError("Identity token is required")
            if not self.public_key:
                raise AuthenticationError("Identity provider is not configured")

            options = {"require": ["sub", "exp"], "verify_aud": bool(self.audience)}
            try:
                payload = jwt.decode(
                    id_token,
                    self.public_key,
                    algorithms=self.algorithms,
                    audience=self.audience,
                    issuer=self.issuer,
                    options=options
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("identity.result", "expired")
                raise AuthenticationError("Identity token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("identity.result", "invalid")
                logger.warning(f"Identity token rejected: {str(e)}")
                raise AuthenticationError(f"Invalid identity token: {str(e)}")

            span.set_attribute("identity.result", "success")
            return IdentityClaims(
                subject=payload["sub"],
                email=payload.get("email"),
                email_verified=bool(payload.get("email_verified", False))
            )
