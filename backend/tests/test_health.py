"""
Tests for health check endpoints.
"""

from sqlalchemy.exc import OperationalError

from rest_api.main import app
from shared.infrastructure.db import get_db


class TestHealthEndpoints:
    """Test health check API endpoints."""

    def test_health_check(self, client):
        """Basic health check should return healthy status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "rest-api"
        assert data["database"] == "ok"

    def test_health_needs_no_tenant_or_token(self, client):
        response = client.get("/api/health", headers={"Host": "unknown.example.com"})
        assert response.status_code == 200

    def test_database_down_is_503(self, client):
        class BrokenSession:
            def execute(self, *args, **kwargs):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        app.dependency_overrides[get_db] = lambda: BrokenSession()

        response = client.get("/api/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["database"] == "unavailable"

    def test_security_headers_present(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.headers.get("X-Content-Type-Options") == "nosniff"
        assert "X-Request-ID" in response.headers

    def test_tenant_router_responds_with_security_headers(self, client, seed_tenant, auth_headers):
        response = client.get("/api/tables", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers.get("X-Frame-Options") == "DENY"
        assert "default-src 'none'" in response.headers.get("Content-Security-Policy", "")
        assert "server" not in response.headers
