# SPDX-License-Identifier: Apache-2.0

"""
Redis service for the JWT token blocklist.

Logout places a token's ``jti`` on the blocklist until the token would have
expired anyway; authentication rejects any blocklisted token.
"""

import os
import time
import logging
from typing import Optional
import redis
from opentelemetry import trace

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

BLOCKLIST_PREFIX = "blocklist:jwt:"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """
    Redis service backed by redis-py.

    When the server cannot be reached at start-up the service runs without
    a client and every blocklist lookup reports "not blocked".
    """

    def __init__(self, redis_url: Optional[str] = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Redis connection URL (redis://host:port)
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")

        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
            self._test_connection()
            logger.info(f"Redis service initialized successfully at {self.redis_url}")

        except (RedisConnectionError, redis.RedisError) as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        """Test Redis connection."""
        try:
            if not self.client.ping():
                raise RedisConnectionError("Redis ping failed")
        except redis.RedisError as e:
            logger.error(f"Redis connection test failed: {str(e)}")
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")

    def is_available(self) -> bool:
        """Check if Redis service is available."""
        return self.client is not None

    def health_check(self) -> dict:
        if not self.client:
            return {"status": "unavailable"}
        try:
            self.client.ping()
            return {"status": "healthy"}
        except redis.RedisError as e:
            return {"status": "unhealthy", "error": str(e)}

    def add_to_blocklist(self, jti: str, exp: int) -> bool:
        """
        Add a JWT token to the blocklist.

        Args:
            jti: JWT ID (unique token identifier)
            exp: Token expiration timestamp

        Returns:
            True if the token is (or no longer needs to be) blocked
        """
        ttl = max(0, exp - int(time.time()))
        if ttl <= 0:
            return True  # Token already expired

        if not self.client:
            logger.warning("Redis client not available, token not blocklisted")
            return False

        with tracer.start_as_current_span("redis.blocklist.add") as span:
            span.set_attributes({"redis.ttl": ttl})
            try:
                result = self.client.setex(f"{BLOCKLIST_PREFIX}{jti}", ttl, "blocked")
                span.set_attribute("redis.result", "success")
                return bool(result)
            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis blocklist write failed: {str(e)}")
                return False

    def is_token_blocked(self, jti: str) -> bool:
        """
        Check if a JWT token is in the blocklist.

        Args:
            jti: JWT ID to check

        Returns:
            True if token is blocked, False otherwise
        """
        if not self.client:
            return False

        with tracer.start_as_current_span("redis.blocklist.check"):
            try:
                return bool(self.client.exists(f"{BLOCKLIST_PREFIX}{jti}"))
            except redis.RedisError as e:
                logger.error(f"Redis blocklist check failed: {str(e)}")
                return False


def create_redis_service() -> RedisService:
    """
    Factory function to create Redis service instance.

    Returns:
        RedisService instance
    """
    return RedisService()
