"""Tests for the per-endpoint rate limit policies."""

from unittest.mock import MagicMock

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient
from starlette.middleware.base import BaseHTTPMiddleware

from remitdesk.core.config.settings import Settings
from remitdesk.core.exceptions import RateLimitExceededError
from remitdesk.core.security.rate_limiting import response_from_exception
from remitdesk.domain.entities.auth import AuthenticatedUser
from remitdesk.infrastructure.security.rate_limiting import SlidingWindowRateLimiter
from remitdesk.presentation.api.dependencies.rate_limiter import (
    auth_rate_limit,
    ip_rate_limit,
    payment_rate_limit,
    sensitive_rate_limit,
    tenant_rate_limit,
    user_rate_limit,
)


class PrincipalMiddleware(BaseHTTPMiddleware):
    """Sets user and tenant from ``X-Test-User`` / ``X-Test-Tenant`` headers."""

    async def dispatch(self, request: Request, call_next):
        user_id = request.headers.get("X-Test-User")
        tenant = request.headers.get("X-Test-Tenant")
        tenant_id = int(tenant) if tenant else None
        request.state.tenant_id = tenant_id
        request.state.user = AuthenticatedUser(id=int(user_id), tenant_id=tenant_id) if user_id else None
        return await call_next(request)


def build_app(settings: Settings, limiter) -> FastAPI:
    app = FastAPI()
    app.state.settings = settings
    app.state.rate_limiter = limiter

    @app.exception_handler(RateLimitExceededError)
    async def rate_limited(request: Request, exc: RateLimitExceededError):
        return response_from_exception(exc)

    @app.get("/ip", dependencies=[Depends(ip_rate_limit)])
    async def ip_endpoint():
        return {"ok": True}

    @app.get("/user", dependencies=[Depends(user_rate_limit)])
    async def user_endpoint():
        return {"ok": True}

    @app.post("/tenant", dependencies=[Depends(tenant_rate_limit)])
    async def tenant_endpoint():
        return {"ok": True}

    @app.post("/sensitive", dependencies=[Depends(sensitive_rate_limit)])
    async def sensitive_endpoint():
        return {"ok": True}

    @app.post("/login", dependencies=[Depends(auth_rate_limit)])
    async def login():
        return {"ok": True}

    @app.post("/pay", dependencies=[Depends(payment_rate_limit)])
    async def pay():
        return {"ok": True}

    app.add_middleware(PrincipalMiddleware)
    return app


@pytest.fixture
def settings():
    return Settings(
        ENVIRONMENT="test",
        RATE_LIMIT_GENERAL_LIMIT=4,
        RATE_LIMIT_SENSITIVE_LIMIT=2,
        RATE_LIMIT_AUTH_LIMIT=3,
        RATE_LIMIT_PAYMENT_LIMIT=2,
        RATE_LIMIT_TENANT_MULTIPLIER=1.5,
    )


@pytest.fixture
def limiter(clock):
    return SlidingWindowRateLimiter(clock=clock)


@pytest.fixture
def app(settings, limiter):
    return build_app(settings, limiter)


@pytest.fixture
def client(app):
    return TestClient(app)


def principal(user_id: int | None = None, tenant_id: int | None = None, ip: str = "1.2.3.4") -> dict[str, str]:
    headers = {"X-Forwarded-For": ip}
    if user_id is not None:
        headers["X-Test-User"] = str(user_id)
    if tenant_id is not None:
        headers["X-Test-Tenant"] = str(tenant_id)
    return headers


class TestIpPolicy:
    def test_limit_then_429_with_headers(self, client, limiter, clock):
        for _ in range(4):
            assert client.get("/ip", headers=principal()).status_code == 200

        response = client.get("/ip", headers=principal())

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Too many requests from this IP"
        assert body["message"].startswith("IP rate limit exceeded. Try again after ")
        assert body["retryAfter"] == int(clock.now + 60)
        assert response.headers["X-RateLimit-Limit"] == "4"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert "Retry-After" in response.headers
        assert limiter.get_window("ip_1.2.3.4").count == 4

    def test_other_ips_are_unaffected(self, client):
        for _ in range(5):
            client.get("/ip", headers=principal())

        assert client.get("/ip", headers=principal(ip="5.6.7.8")).status_code == 200

    def test_window_reopens_after_expiry(self, client, clock):
        for _ in range(5):
            client.get("/ip", headers=principal())
        clock.advance(61)

        assert client.get("/ip", headers=principal()).status_code == 200


class TestUserPolicy:
    def test_authenticated_user_is_keyed_by_id(self, client, limiter):
        client.get("/user", headers=principal(user_id=42, ip="1.1.1.1"))
        client.get("/user", headers=principal(user_id=42, ip="2.2.2.2"))

        assert limiter.get_window("user_42").count == 2
        assert limiter.get_window("ip_1.1.1.1") is None

    def test_anonymous_caller_falls_back_to_ip(self, client, limiter):
        client.get("/user", headers=principal())

        assert limiter.get_window("ip_1.2.3.4").count == 1


class TestTenantPolicy:
    def test_tenant_budget_is_scaled_and_shared(self, client, limiter):
        # limit 4 * 1.5 = 6 for the tenant, 4 per user
        statuses = []
        for user_id in (1, 1, 1, 1, 2, 2):
            statuses.append(client.post("/tenant", headers=principal(user_id=user_id, tenant_id=7)).status_code)
        assert statuses == [200] * 6

        response = client.post("/tenant", headers=principal(user_id=3, tenant_id=7))

        assert response.status_code == 429
        assert response.json()["error"] == "Tenant rate limit exceeded"
        assert response.headers["X-RateLimit-Limit"] == "6"
        assert limiter.get_window("tenant_7_user_3") is None

    def test_user_budget_within_tenant(self, client, limiter):
        for _ in range(4):
            client.post("/tenant", headers=principal(user_id=1, tenant_id=7))

        response = client.post("/tenant", headers=principal(user_id=1, tenant_id=7))

        assert response.status_code == 429
        assert response.json()["error"] == "User rate limit exceeded"
        assert limiter.get_window("tenant_7_user_1").count == 4
        # The rejected request still consumed tenant budget
        assert limiter.get_window("tenant_7").count == 5

    def test_user_without_tenant_uses_tenant_zero(self, client, limiter):
        client.post("/tenant", headers=principal(user_id=9))

        assert limiter.get_window("tenant_0_user_9").count == 1
        assert limiter.get_window("tenant_0") is None


class TestSensitiveAndPaymentPolicies:
    def test_sensitive_limit(self, client, limiter):
        for _ in range(2):
            client.post("/sensitive", headers=principal(user_id=42, tenant_id=7))

        response = client.post("/sensitive", headers=principal(user_id=42, tenant_id=7))

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests to sensitive endpoint"
        assert limiter.get_window("sensitive_user_42").count == 2

    def test_payment_limit(self, client, limiter):
        for _ in range(2):
            client.post("/pay", headers=principal(user_id=42, tenant_id=7))

        response = client.post("/pay", headers=principal(user_id=42, tenant_id=7))

        assert response.status_code == 429
        assert response.json()["error"] == "Too many payment requests"
        assert limiter.get_window("payment_tenant_7_user_42").count == 2


class TestAuthPolicy:
    def test_breach_logs_security_event(self, app, client):
        events = MagicMock()
        app.state.security_event_service = events
        for _ in range(3):
            assert client.post("/login", headers=principal()).status_code == 200
        events.log_event.assert_not_called()

        response = client.post("/login", headers=principal())

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Too many authentication attempts"
        assert body["message"].startswith("Please wait before trying again. Reset at ")
        events.log_event.assert_called_once_with("rate_limit_exceeded", "1.2.3.4", "/login")

    def test_breach_without_event_service(self, client):
        for _ in range(3):
            client.post("/login", headers=principal())

        assert client.post("/login", headers=principal()).status_code == 429

    def test_event_scheduling_failure_does_not_change_response(self, app, client):
        events = MagicMock()
        events.log_event.side_effect = RuntimeError("no loop")
        app.state.security_event_service = events
        for _ in range(3):
            client.post("/login", headers=principal())

        assert client.post("/login", headers=principal()).status_code == 429


class TestFailOpen:
    def test_limiter_errors_allow_request(self, settings):
        limiter = MagicMock()
        limiter.check_rate_limit.side_effect = RuntimeError("limiter down")
        client = TestClient(build_app(settings, limiter))

        assert client.post("/tenant", headers=principal(user_id=1, tenant_id=7)).status_code == 200
        assert limiter.check_rate_limit.call_count == 2

    def test_disabled_rate_limiting_skips_checks(self, limiter):
        settings = Settings(ENVIRONMENT="test", RATE_LIMITING_ENABLED=False, RATE_LIMIT_GENERAL_LIMIT=1)
        client = TestClient(build_app(settings, limiter))

        for _ in range(3):
            assert client.get("/ip", headers=principal()).status_code == 200
        assert len(limiter) == 0

    def test_missing_limiter_skips_checks(self, settings):
        client = TestClient(build_app(settings, None))

        assert client.get("/ip", headers=principal()).status_code == 200
