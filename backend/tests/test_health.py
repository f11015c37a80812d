"""Tests for /, /health and /health/deep."""

from unittest.mock import patch

from clixen.clients.circuit_breaker import get_breaker


class TestHealth:

    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["db"] == "ok"
        assert "uptime_seconds" in data
        assert "version" in data

    def test_root_returns_api_info(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Clixen API"
        assert data["status"] == "running"


class TestDeepHealth:

    def test_unconfigured_services_degrade(self, client):
        resp = client.get("/health/deep")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "degraded"
        assert data["checks"] == {
            "database": "ok",
            "n8n": "not_configured",
            "supabase": "not_configured",
            "openai": "not_configured",
        }

    def test_reports_open_breakers(self, client):
        breaker = get_breaker("n8n")
        for _ in range(3):
            breaker.record_failure()
        data = client.get("/health/deep").json()
        assert data["circuit_breakers"]["n8n"] == "open"
        assert data["status"] == "degraded"

    def test_database_failure_is_503(self, client):
        with patch("clixen.services.health_service.check_database", return_value="error"):
            resp = client.get("/health/deep")
        assert resp.status_code == 503
        assert resp.json()["status"] == "down"


class TestResponseHeaders:

    def test_response_includes_middleware_headers(self, client):
        resp = client.get("/health")
        assert "x-request-id" in resp.headers
        assert resp.headers["x-response-time"].endswith("ms")

    def test_incoming_request_id_is_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["x-request-id"] == "abc123"
