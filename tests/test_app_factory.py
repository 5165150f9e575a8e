"""
Tests for api/app.py — create_app() factory

Verifies the FastAPI app is created with the right settings, routers are
registered, the middleware stack is active and /health reports the main
page state.
"""
import logging
import sys
from pathlib import Path

from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from api.app import _JsonFormatter, create_app
from fakes import FakeBackend
from utils.config import MAIN_PAGE_TABLE


class TestCreateApp:
    def test_creates_fastapi_instance(self, app):
        assert app.title == "CRG Admin"
        assert app.version == "1.0.0"

    def test_registers_api_routes(self, app):
        route_paths = {getattr(r, "path", "") for r in app.routes}
        for path in ("/api/v1/main-page", "/api/v1/main-page/active", "/api/v1/events",
                     "/api/v1/activities", "/api/v1/ads", "/api/v1/educational",
                     "/api/v1/partners", "/api/v1/inquiries", "/api/v1/users",
                     "/api/v1/dashboard/summary", "/api/v1/help", "/auth/login",
                     "/health", "/"):
            assert path in route_paths

    def test_state_wired(self, app, backend, clock):
        assert app.state.backend is backend
        assert app.state.clock is clock
        assert app.state.main_page.clock is clock
        assert not app.state.main_page.loaded


class TestHealthEndpoint:
    def test_health_ok_after_load(self, client):
        client.get("/api/v1/main-page/active")
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["main_page"] == {"loaded": True, "active_id": "default", "load_error": None}

    def test_health_degraded_when_store_unreadable(self, client, backend):
        backend.fail.add("list_documents")
        client.get("/api/v1/main-page/active")
        resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"

    def test_backend_configured_flag(self, client):
        assert client.get("/health").json()["backend_configured"] is False


class TestMiddleware:
    def test_request_id_header(self, client):
        assert len(client.get("/api/v1/main-page/active").headers["X-Request-ID"]) == 8

    def test_security_headers(self, client):
        resp = client.get("/")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert "img-src 'self' data: https:" in resp.headers["Content-Security-Policy"]

    def test_unknown_api_path_is_json_404(self, client):
        resp = client.get("/api/v1/nothing-here")
        assert resp.status_code == 404
        assert resp.json()["status_code"] == 404

    def test_unknown_page_is_html_404(self, client):
        resp = client.get("/nothing-here")
        assert resp.status_code == 404
        assert "Page not found" in resp.text


class TestLifespan:
    def test_startup_loads_working_set(self, app_config, clock):
        backend = FakeBackend()
        backend.seed(MAIN_PAGE_TABLE, {"id": "A", "subtitle": "Winter", "start_date": "2025-01-01",
                                       "end_date": "2025-01-31", "is_default": False,
                                       "created_at": "2024-12-01T00:00:00+00:00"})
        app_config.refresh_interval_seconds = 3600
        app = create_app(backend=backend, config=app_config, clock=clock)
        with TestClient(app):
            assert app.state.main_page.loaded
            assert app.state.main_page.active.id == "A"
            calls = list(backend.calls)
        assert calls.count("list_documents") == 1

    def test_startup_survives_unreachable_store(self, app_config, clock):
        backend = FakeBackend()
        backend.fail.update({"list_documents", "set_document"})
        app_config.refresh_interval_seconds = 3600
        app = create_app(backend=backend, config=app_config, clock=clock)
        with TestClient(app) as client:
            assert client.get("/api/v1/main-page/active").json()["id"] == "default"

    def test_startup_survives_out_of_range_timestamp(self, app_config, clock):
        backend = FakeBackend()
        backend.seed(MAIN_PAGE_TABLE, {"id": "B", "subtitle": "Broken", "start_date": "0001-01-01T00:00:00+05:00",
                                       "end_date": "2025-01-31", "is_default": False,
                                       "created_at": "2024-12-01T00:00:00+00:00"})
        app_config.refresh_interval_seconds = 3600
        app = create_app(backend=backend, config=app_config, clock=clock)
        with TestClient(app) as client:
            assert client.get("/api/v1/main-page/active").json()["id"] == "default"


class TestJsonFormatter:
    def test_includes_extra_fields(self):
        record = logging.LogRecord("crg_admin.api", logging.INFO, __file__, 1,
                                   "request", None, None)
        record.path = "/health"
        record.status = 200
        line = _JsonFormatter().format(record)
        assert '"path": "/health"' in line
        assert '"status": 200' in line
        assert '"logger": "crg_admin.api"' in line
