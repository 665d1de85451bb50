# SPDX-License-Identifier: Apache-2.0

"""
Health Check Service

Reports the status of MongoDB and Redis plus basic process host metrics.
"""

import os
import time
import logging
from typing import Any, Dict, List
import psutil
from opentelemetry import trace

from ..models.base import utc_now
from .mongodb import MongoDBService
from .redis import RedisService

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

SERVICE_NAME = "civic-tracker-api"
SERVICE_VERSION = "1.0.0"


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(self, mongodb_service: MongoDBService, redis_service: RedisService):
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service

    def get_health(self, include_metrics: bool = True) -> Dict[str, Any]:
        """Get health status for all dependencies."""
        with tracer.start_as_current_span("health.check") as span:
            start_time = time.time()

            mongodb_health = self.mongodb_service.health_check()
            redis_health = self.redis_service.health_check()

            # Redis only backs the logout blocklist, so it cannot make the API unhealthy
            overall_status = determine_overall_status(
                mongodb_health["status"],
                [redis_health["status"]]
            )

            response_time_ms = round((time.time() - start_time) * 1000, 2)
            health_data = {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": utc_now().isoformat(),
                "response_time_ms": response_time_ms,
                "dependencies": {
                    "mongodb": mongodb_health,
                    "redis": redis_health
                }
            }
            if include_metrics:
                health_data["system_metrics"] = get_system_metrics()

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": mongodb_health["status"],
                "health.redis_status": redis_health["status"]
            })
            return health_data


def determine_overall_status(primary_status: str, secondary_statuses: List[str]) -> str:
    """Unhealthy when the primary store is down, degraded when anything else is."""
    if primary_status != "healthy":
        return "unhealthy"
    if all(status == "healthy" for status in secondary_statuses):
        return "healthy"
    return "degraded"


def get_system_metrics() -> Dict[str, Any]:
    """Get basic system performance metrics."""
    try:
        memory = psutil.virtual_memory()
        process = psutil.Process(os.getpid())
        return {
            "cpu_percent": psutil.cpu_percent(interval=None),
            "memory": {
                "used_mb": round(memory.used / 1024 / 1024, 2),
                "total_mb": round(memory.total / 1024 / 1024, 2),
                "percent": memory.percent
            },
            "process_rss_mb": round(process.memory_info().rss / 1024 / 1024, 2),
            "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
        }
    except psutil.Error as e:
        logger.warning(f"Failed to collect system metrics: {e}")
        return {"error": f"Failed to collect system metrics: {str(e)}"}
