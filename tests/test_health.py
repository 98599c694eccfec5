"""Tests for /health, / and the startup gate."""

from unittest.mock import AsyncMock, MagicMock


class TestHealth:
    def test_healthy(self, app, client):
        app.state.postgres_conn = MagicMock(ping=AsyncMock(return_value=True))
        app.state.redis_client = None
        app.state.s3_client = MagicMock(is_enabled=True)
        app.state.llm_registry = MagicMock(configured=MagicMock(return_value={"openai": True, "google": False}))

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["checks"]["database"] == "connected"
        assert body["checks"]["storage"] == "configured"
        assert body["checks"]["llm_providers"] == {"openai": True, "google": False}

    def test_database_failure_is_degraded(self, app, client):
        app.state.postgres_conn = MagicMock(ping=AsyncMock(side_effect=ConnectionError("refused")))

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_missing_config_is_500(self, app, client):
        app.state.startup_complete = False
        app.state.startup_error = "Missing required environment variables: JWT_SECRET"

        response = client.get("/health")

        assert response.status_code == 500
        assert response.json()["startup_complete"] is False

    def test_still_starting(self, app, client):
        app.state.startup_complete = False
        app.state.startup_error = None

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "starting"


class TestStartupGate:
    def test_api_blocked_until_startup_completes(self, app, client):
        app.state.startup_complete = False
        app.state.startup_error = "Database connection timeout"

        response = client.get("/kanban")

        assert response.status_code == 503
        assert "Database connection timeout" in response.json()["message"]

    def test_root_always_available(self, app, client):
        app.state.startup_complete = False

        assert client.get("/").json()["service"] == "team-hub-api"
