"""Tests for the health endpoint and error handler."""

from fastapi import APIRouter

from src.api.main import app
from src.cli.config import get_config
from src.errors import CRMForgeError


class TestHealth:
    """Tests for GET /health."""

    def test_configured(self, client, monkeypatch):
        monkeypatch.setenv("NOTION_API_KEY", "secret_env")
        get_config.cache_clear()
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["record_store_configured"] is True

    def test_unconfigured(self, client):
        data = client.get("/health").json()
        assert data["record_store_configured"] is False


class TestErrorHandler:
    """Tests for CRMForgeError rendering."""

    def test_auth_error_is_401(self, client):
        router = APIRouter()

        @router.get("/_test/auth-error")
        def _raise():
            raise CRMForgeError.from_code("E-5001")

        app.include_router(router)
        try:
            response = client.get("/_test/auth-error")
        finally:
            app.router.routes[:] = [
                r for r in app.router.routes if getattr(r, "path", "") != "/_test/auth-error"
            ]

        assert response.status_code == 401
        assert response.json()["errorCode"] == "E-5001"
