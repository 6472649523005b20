"""
Unit tests for main application endpoints and cross-cutting behaviour.
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import API, get_auth_header

from intranet import middleware
from intranet.error_handlers import register_exception_handlers


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Test the health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_check_no_auth_required(self, client):
        """Test health check doesn't require authentication."""
        response = client.get("/health")
        assert response.status_code == 200


class TestApplicationSetup:
    """Tests for application configuration."""

    def test_app_title(self, client):
        """Test that the app has correct title."""
        response = client.get("/openapi.json")
        assert response.status_code == 200
        assert response.json()["info"]["title"] == "Intranet Portal API"

    def test_routes_are_versioned(self, client):
        """All API routes live under the versioned prefix."""
        paths = client.get("/openapi.json").json()["paths"]
        api_paths = [p for p in paths if p != "/health"]
        assert api_paths
        assert all(p.startswith(API) for p in api_paths)

    def test_docs_endpoint_exists(self, client):
        """Test that API documentation endpoint is accessible."""
        response = client.get("/docs")
        assert response.status_code == 200


class TestCorrelationId:
    """Tests for the request logging middleware."""

    def test_generates_correlation_id(self, client):
        response = client.get("/health")
        assert response.headers.get("X-Correlation-Id")

    def test_echoes_incoming_correlation_id(self, client):
        response = client.get("/health", headers={"X-Correlation-Id": "abc-123"})
        assert response.headers["X-Correlation-Id"] == "abc-123"


class RecordingLogger:
    def __init__(self):
        self.events = []

    def info(self, event, **kw):
        self.events.append(("info", event, kw))

    def warning(self, event, **kw):
        self.events.append(("warning", event, kw))

    def error(self, event, **kw):
        self.events.append(("error", event, kw))


class TestUnhandledErrors:
    """A crashing route still gets logged and tagged."""

    @pytest.fixture
    def crashing_client(self, monkeypatch):
        recorder = RecordingLogger()
        monkeypatch.setattr(middleware, "logger", recorder)

        crashing_app = FastAPI()
        crashing_app.add_middleware(middleware.RequestLoggingMiddleware)
        register_exception_handlers(crashing_app)

        @crashing_app.get("/boom")
        def boom():
            raise RuntimeError("boom")

        with TestClient(crashing_app, raise_server_exceptions=False) as test_client:
            yield test_client, recorder

    def test_500_is_logged_as_request_completed(self, crashing_client):
        test_client, recorder = crashing_client
        response = test_client.get("/boom", headers={"X-Correlation-Id": "abc"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        completed = [e for e in recorder.events if e[1] == "request_completed"]
        assert len(completed) == 1
        level, _, fields = completed[0]
        assert level == "error"
        assert fields["status_code"] == 500
        assert fields["path"] == "/boom"

    def test_500_echoes_correlation_id(self, crashing_client):
        test_client, _ = crashing_client
        response = test_client.get("/boom", headers={"X-Correlation-Id": "abc"})
        assert response.headers.get("X-Correlation-Id") == "abc"


class TestErrorEnvelope:
    """Every error uses the {"error": {"code", "message"}} shape."""

    def test_unauthenticated_request(self, client):
        response = client.get(f"{API}/rooms")
        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "UNAUTHORIZED"
        assert error["message"]

    def test_invalid_token(self, client):
        response = client.get(f"{API}/rooms", headers=get_auth_header("not-a-jwt"))
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_unknown_route(self, client):
        response = client.get(f"{API}/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_request_validation_error(self, client, admin_token):
        response = client.post(
            f"{API}/rooms",
            json={"name": "No capacity"},
            headers=get_auth_header(admin_token),
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any(e["field"] == "capacity" for e in error["details"]["errors"])

    def test_forbidden_for_regular_user(self, client, regular_token):
        response = client.post(
            f"{API}/rooms",
            json={"name": "Room", "capacity": 4},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"


class TestPagination:
    """Pagination parameters are validated on every list endpoint."""

    def test_page_size_above_limit(self, client, admin_token):
        response = client.get(f"{API}/rooms?pageSize=101", headers=get_auth_header(admin_token))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PARAMS"

    def test_page_below_one(self, client, admin_token):
        response = client.get(f"{API}/users?page=0", headers=get_auth_header(admin_token))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PARAMS"

    def test_pagination_metadata(self, client, admin_token, sample_rooms):
        response = client.get(f"{API}/rooms?page=1&pageSize=1", headers=get_auth_header(admin_token))
        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 1
        assert body["pagination"] == {
            "currentPage": 1,
            "pageSize": 1,
            "totalItems": 2,
            "totalPages": 2,
        }
