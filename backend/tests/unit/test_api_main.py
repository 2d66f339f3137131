"""Tests for the FastAPI application: health, headers, error envelope, lifespan."""

import pytest
import structlog
from httpx import ASGITransport, AsyncClient

from admin_auth.core.errors import ForbiddenError
from admin_auth.main import create_app, lifespan


@pytest.fixture
def app(container):
    """Create test application instance bound to the test container."""
    return create_app(container=container)


@pytest.fixture
async def app_client(app):
    """Client that turns unhandled exceptions into responses."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoint:
    async def test_health_returns_healthy_status(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestSecurityHeaders:
    async def test_common_headers(self, client):
        response = await client.get("/health")

        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["referrer-policy"] == "strict-origin-when-cross-origin"
        assert "default-src 'none'" in response.headers["content-security-policy"]
        assert "strict-transport-security" not in response.headers

    async def test_api_responses_not_cached(self, client):
        response = await client.get("/api/v1/auth/me")

        assert response.headers["cache-control"] == "no-store, max-age=0"

    async def test_hsts_in_production(self, settings_factory, container):
        app = create_app(settings_factory(environment="production"), container=container)
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            response = await ac.get("/health")

        assert "max-age=31536000" in response.headers["strict-transport-security"]


class TestErrorEnvelope:
    async def test_api_error(self, app, app_client):
        @app.get("/boom-forbidden")
        async def boom_forbidden():
            raise ForbiddenError("Nope")

        response = await app_client.get("/boom-forbidden")

        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "error": "FORBIDDEN",
            "message": "Nope",
        }

    async def test_unhandled_exception_hides_detail(self, app, app_client):
        @app.get("/boom")
        async def boom():
            raise RuntimeError("database password is hunter2")

        response = await app_client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"] == "INTERNAL_ERROR"
        assert "hunter2" not in response.text

    async def test_unknown_route(self, client):
        response = await client.get("/api/v1/nonexistent")

        assert response.status_code == 404


class TestCors:
    async def test_preflight_allows_configured_origin(self, client):
        response = await client.options(
            "/api/v1/auth/login",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert response.headers["access-control-allow-credentials"] == "true"


class TestLifespan:
    @pytest.fixture(autouse=True)
    def restore_structlog(self):
        """The lifespan configures structlog process-wide; undo it."""
        yield
        structlog.reset_defaults()

    async def test_builds_and_bootstraps_container(self, settings_factory):
        app = create_app(settings_factory(default_admin_email="owner@x.com"))

        async with lifespan(app):
            container = app.state.container
            assert await container.store.count_users() == 1

    async def test_uses_provided_container(self, app, container):
        async with lifespan(app):
            assert app.state.container is container
