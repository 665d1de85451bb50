"""
Tests for health check and system status endpoints.

This module tests dependency checks, system metrics, and status reporting.
"""

import json
from unittest.mock import patch

import psutil
import pytest

from civic_tracker.services.health import (
    HealthCheckService,
    determine_overall_status,
    get_system_metrics
)


class TestHealthCheckEndpoint:
    """Test cases for the /api/healthz endpoint."""

    def test_health_check_success_all_healthy(self, client):
        """Test health check when all dependencies are healthy."""
        response = client.get('/api/healthz')

        assert response.status_code == 200
        data = json.loads(response.data)

        # Check HAL structure
        assert data['_links']['self']['href'] == 'http://testserver/api/healthz'

        # Check health data
        assert data['status'] == 'healthy'
        assert data['service'] == 'civic-tracker-api'
        assert data['version'] == '1.0.0'
        assert 'timestamp' in data
        assert data['dependencies']['mongodb']['status'] == 'healthy'
        assert data['dependencies']['redis']['status'] == 'healthy'
        assert 'system_metrics' in data

    def test_health_check_degraded_redis_unhealthy(self, client, redis_service):
        """Redis only backs the logout blocklist, so the API stays up."""
        redis_service.health_check.return_value = {"status": "unhealthy", "error": "Connection refused"}

        response = client.get('/api/healthz')

        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'degraded'

    def test_health_check_unhealthy_mongodb(self, client, populated_store):
        """Test health check when MongoDB is unhealthy."""
        with patch.object(populated_store, 'health_check',
                          return_value={'status': 'unhealthy', 'error': 'Connection timeout'}):
            response = client.get('/api/healthz')

        assert response.status_code == 503
        data = json.loads(response.data)
        assert data['status'] == 'unhealthy'
        assert data['dependencies']['mongodb']['error'] == 'Connection timeout'


class TestHealthCheckService:
    """Test cases for HealthCheckService class."""

    def test_metrics_can_be_skipped(self, populated_store, redis_service):
        service = HealthCheckService(populated_store, redis_service)

        health = service.get_health(include_metrics=False)

        assert 'system_metrics' not in health
        assert health['response_time_ms'] >= 0

    @pytest.mark.parametrize("primary,secondary,expected", [
        ("healthy", ["healthy"], "healthy"),
        ("healthy", ["unavailable"], "degraded"),
        ("unhealthy", ["healthy"], "unhealthy"),
        ("unhealthy", ["unhealthy"], "unhealthy"),
    ])
    def test_determine_overall_status(self, primary, secondary, expected):
        assert determine_overall_status(primary, secondary) == expected

    def test_system_metrics(self):
        metrics = get_system_metrics()

        assert 'cpu_percent' in metrics
        assert metrics['memory']['total_mb'] > 0

    @patch('civic_tracker.services.health.psutil.virtual_memory', side_effect=psutil.Error("denied"))
    def test_system_metrics_failure(self, mock_memory):
        metrics = get_system_metrics()

        assert 'error' in metrics
