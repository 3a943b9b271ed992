"""
Tests for middleware and infrastructure components.
"""

import logging
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from rest_api.core import cors
from rest_api.core.middlewares import (
    ContentTypeValidationMiddleware,
    SecurityHeadersMiddleware,
    register_middlewares,
)
from shared.config.logging import StructuredFormatter, mask_code
from shared.config.settings import settings
from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    CorrelationIdMiddleware,
    get_request_id,
    request_id_var,
)
from shared.infrastructure.db import as_utc, safe_commit


# =============================================================================
# SecurityHeadersMiddleware Tests
# =============================================================================


@pytest.fixture
def app_with_security_headers():
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware)

    @app.get("/test")
    def test_endpoint():
        return {"message": "ok"}

    @app.get("/branded")
    def branded_endpoint():
        return JSONResponse({"message": "ok"}, headers={"Server": "mesa/1.0"})

    return app


class TestSecurityHeadersMiddleware:

    def test_adds_basic_headers(self, app_with_security_headers):
        response = TestClient(app_with_security_headers).get("/test")

        assert response.status_code == 200
        assert response.headers.get("X-Content-Type-Options") == "nosniff"
        assert response.headers.get("X-Frame-Options") == "DENY"
        assert response.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"

    def test_strips_server_header(self, app_with_security_headers):
        response = TestClient(app_with_security_headers).get("/branded")

        assert response.status_code == 200
        assert response.json() == {"message": "ok"}
        assert "server" not in response.headers

    def test_csp_denies_everything(self, app_with_security_headers):
        response = TestClient(app_with_security_headers).get("/test")

        csp = response.headers.get("Content-Security-Policy", "")
        assert "default-src 'none'" in csp
        assert "frame-ancestors 'none'" in csp

    def test_hsts_only_in_production(self, app_with_security_headers, monkeypatch):
        client = TestClient(app_with_security_headers)

        monkeypatch.setattr(settings, "environment", "development")
        assert "Strict-Transport-Security" not in client.get("/test").headers

        monkeypatch.setattr(settings, "environment", "production")
        hsts = client.get("/test").headers.get("Strict-Transport-Security", "")
        assert "max-age=31536000" in hsts


# =============================================================================
# ContentTypeValidationMiddleware Tests
# =============================================================================


class TestContentTypeValidationMiddleware:

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(ContentTypeValidationMiddleware)

        @app.post("/test")
        def post_endpoint(data: dict | None = None):
            return {"message": "ok"}

        @app.get("/test")
        def get_endpoint():
            return {"message": "ok"}

        return TestClient(app)

    def test_allows_json(self, client):
        assert client.post("/test", json={"key": "value"}).status_code == 200

    def test_rejects_form_urlencoded(self, client):
        response = client.post(
            "/test",
            data={"key": "value"},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 415

    def test_rejects_plain_text(self, client):
        response = client.post("/test", content="some data", headers={"Content-Type": "text/plain"})

        assert response.status_code == 415
        assert "Unsupported Media Type" in response.json()["detail"]

    def test_get_is_not_checked(self, client):
        assert client.get("/test").status_code == 200


# =============================================================================
# Correlation IDs
# =============================================================================


class TestCorrelationIdMiddleware:

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(CorrelationIdMiddleware)

        @app.get("/test")
        def test_endpoint():
            return {"request_id": get_request_id()}

        return TestClient(app)

    def test_generates_request_id(self, client):
        response = client.get("/test")

        request_id = response.headers.get("X-Request-ID")
        assert request_id is not None
        assert len(request_id) == 36

    def test_reuses_provided_request_id(self, client):
        response = client.get("/test", headers={"X-Request-ID": "req-12345"})
        assert response.headers.get("X-Request-ID") == "req-12345"


class TestCorrelationIdFilter:

    def test_adds_request_id_to_log_record(self):
        token = request_id_var.set("test-request-123")
        try:
            record = MagicMock()
            assert CorrelationIdFilter().filter(record) is True
            assert record.request_id == "test-request-123"
        finally:
            request_id_var.reset(token)

    def test_uses_dash_when_no_request_id(self):
        token = request_id_var.set("")
        try:
            record = MagicMock()
            CorrelationIdFilter().filter(record)
            assert record.request_id == "-"
        finally:
            request_id_var.reset(token)


# =============================================================================
# Logging helpers
# =============================================================================


class TestStructuredLogging:

    def test_formatter_emits_extra_data(self):
        import json

        record = logging.LogRecord("rest_api.qr", logging.INFO, __file__, 1, "QR code issued", None, None)
        record.extra_data = {"tenant_id": 1}
        record.request_id = "req-1"

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "QR code issued"
        assert data["data"] == {"tenant_id": 1}
        assert data["request_id"] == "req-1"

    @pytest.mark.parametrize(
        "code, expected",
        [(None, "<no-code>"), ("", "<no-code>"), ("abc", "a***"), ("9f1c2d3e", "9f1c***")],
    )
    def test_mask_code(self, code, expected):
        assert mask_code(code) == expected


# =============================================================================
# Database helpers
# =============================================================================


class TestSafeCommit:

    def test_commits_successfully(self):
        mock_db = MagicMock()
        safe_commit(mock_db)

        mock_db.commit.assert_called_once()
        mock_db.rollback.assert_not_called()

    def test_rolls_back_and_reraises(self):
        class CustomDBError(Exception):
            pass

        mock_db = MagicMock()
        mock_db.commit.side_effect = CustomDBError("boom")

        with pytest.raises(CustomDBError):
            safe_commit(mock_db)
        mock_db.rollback.assert_called_once()


class TestAsUtc:

    def test_naive_gets_utc(self):
        from datetime import datetime, timezone

        assert as_utc(datetime(2025, 1, 1, 12)) == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)
        assert as_utc(None) is None


# =============================================================================
# Registration
# =============================================================================


class TestRegisterMiddlewares:

    def test_registers_all_middlewares(self):
        app = FastAPI()
        register_middlewares(app)

        middleware_classes = [m.cls for m in app.user_middleware]
        assert SecurityHeadersMiddleware in middleware_classes
        assert ContentTypeValidationMiddleware in middleware_classes
        assert CorrelationIdMiddleware in middleware_classes


class TestCorsOrigins:

    def test_defaults_when_unset(self, monkeypatch):
        monkeypatch.setattr(settings, "allowed_origins", "")
        monkeypatch.setattr(settings, "base_url", "https://menu.example/")
        monkeypatch.setattr(settings, "environment", "development")
        assert cors.get_cors_origins() == ["https://menu.example", *cors.DEV_ORIGINS]

    def test_production_defaults_to_base_url_only(self, monkeypatch):
        monkeypatch.setattr(settings, "allowed_origins", "")
        monkeypatch.setattr(settings, "base_url", "https://menu.example")
        monkeypatch.setattr(settings, "environment", "production")
        assert cors.get_cors_origins() == ["https://menu.example"]

    def test_comma_separated_setting(self, monkeypatch):
        monkeypatch.setattr(settings, "allowed_origins", "https://a.example, https://b.example,")
        assert cors.get_cors_origins() == ["https://a.example", "https://b.example"]
