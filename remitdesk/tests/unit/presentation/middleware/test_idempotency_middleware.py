"""
Tests for the idempotency middleware.

A small FastAPI app stands in for the real API. An outer middleware sets the
tenant scope from an ``X-Test-Tenant`` header the way authentication does.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Mount, Route

from remitdesk.application.services import IdempotencyService
from remitdesk.core.exceptions import IdempotencyStorageError
from remitdesk.domain.entities.idempotency import MAX_IDEMPOTENCY_KEY_LENGTH
from remitdesk.infrastructure.persistence.repositories import InMemoryIdempotencyRepository
from remitdesk.presentation.middleware import IdempotencyMiddleware
from remitdesk.presentation.middleware.idempotency import resolve_route_template

KEY_HEADER = "X-Idempotency-Key"


class TenantScopeMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        tenant = request.headers.get("X-Test-Tenant")
        request.state.tenant_id = int(tenant) if tenant else None
        request.state.user = None
        return await call_next(request)


def build_app(service: IdempotencyService | None, *, on_state: bool = False) -> FastAPI:
    app = FastAPI()
    app.state.calls = {"create": 0, "pay": 0, "flaky": 0, "list": 0}

    @app.post("/transactions", status_code=201)
    async def create(request: Request):
        app.state.calls["create"] += 1
        payload = await request.json()
        return {"id": f"tx_{app.state.calls['create']}", "amount": payload.get("amount")}

    @app.get("/transactions")
    async def list_transactions():
        app.state.calls["list"] += 1
        return []

    @app.post("/transactions/{transaction_id}/payments", status_code=201)
    async def pay(transaction_id: str):
        app.state.calls["pay"] += 1
        return {"id": f"pay_{app.state.calls['pay']}", "transaction_id": transaction_id}

    @app.post("/flaky")
    async def flaky():
        app.state.calls["flaky"] += 1
        if app.state.calls["flaky"] == 1:
            return JSONResponse(status_code=422, content={"detail": "try again"})
        return {"ok": True}

    @app.post("/boom")
    async def boom():
        raise RuntimeError("handler exploded")

    if on_state:
        app.state.idempotency_service = service
        app.add_middleware(IdempotencyMiddleware)
    else:
        app.add_middleware(IdempotencyMiddleware, service=service)
    app.add_middleware(TenantScopeMiddleware)
    return app


@pytest.fixture
def repository():
    return InMemoryIdempotencyRepository()


@pytest.fixture
def app(repository):
    return build_app(IdempotencyService(repository, reclaim_backoff_seconds=0))


@pytest.fixture
def client(app):
    return TestClient(app)


def headers(key: str | None = "abc123", tenant: int | None = 7) -> dict[str, str]:
    result = {}
    if key is not None:
        result[KEY_HEADER] = key
    if tenant is not None:
        result["X-Test-Tenant"] = str(tenant)
    return result


class TestReplay:
    def test_retry_replays_stored_response(self, client, app):
        first = client.post("/transactions", content=b'{"amount": 100}', headers=headers())
        second = client.post("/transactions", content=b'{"amount": 100}', headers=headers())

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.content == first.content
        assert second.headers["content-type"] == "application/json"
        assert app.state.calls["create"] == 1

    def test_different_body_conflicts(self, client, app):
        client.post("/transactions", content=b'{"amount": 100}', headers=headers())

        response = client.post("/transactions", content=b'{"amount": 200}', headers=headers())

        assert response.status_code == 409
        assert response.json() == {"error": "Idempotency key reuse with different request"}
        assert app.state.calls["create"] == 1

    def test_handler_receives_the_buffered_body(self, client):
        response = client.post("/transactions", content=b'{"amount": 42}', headers=headers())

        assert response.json()["amount"] == 42

    def test_keys_are_scoped_per_tenant(self, client, app):
        client.post("/transactions", content=b'{"amount": 100}', headers=headers(tenant=7))
        other = client.post("/transactions", content=b'{"amount": 100}', headers=headers(tenant=8))

        assert other.json()["id"] == "tx_2"
        assert app.state.calls["create"] == 2

    def test_route_template_shares_key_across_path_parameters(self, client, app):
        first = client.post("/transactions/12/payments", content=b"{}", headers=headers())
        second = client.post("/transactions/13/payments", content=b"{}", headers=headers())

        assert second.status_code == 201
        assert second.json() == first.json() == {"id": "pay_1", "transaction_id": "12"}
        assert app.state.calls["pay"] == 1


class TestFailures:
    def test_non_2xx_outcome_is_not_cached(self, client, app, repository):
        first = client.post("/flaky", content=b"{}", headers=headers())
        assert first.status_code == 422
        assert len(repository) == 0

        second = client.post("/flaky", content=b"{}", headers=headers())

        assert second.status_code == 200
        assert app.state.calls["flaky"] == 2
        assert len(repository) == 1

    def test_handler_exception_releases_key(self, app, repository):
        client = TestClient(app, raise_server_exceptions=False)

        response = client.post("/boom", content=b"{}", headers=headers())

        assert response.status_code == 500
        assert len(repository) == 0

    def test_storage_failure_returns_500_without_running_handler(self, app, repository):
        repository.try_claim = AsyncMock(side_effect=IdempotencyStorageError(detail="database is locked"))
        client = TestClient(app)

        response = client.post("/transactions", content=b'{"amount": 1}', headers=headers())

        assert response.status_code == 500
        assert response.json() == {"error": "Idempotency check failed"}
        assert app.state.calls["create"] == 0

    def test_persist_failure_after_response_is_logged(self, app, repository, caplog):
        repository.mark_completed = AsyncMock(side_effect=IdempotencyStorageError(detail="disk full"))
        client = TestClient(app)

        response = client.post("/transactions", content=b'{"amount": 1}', headers=headers())

        assert response.status_code == 201
        assert "Failed to persist idempotency outcome" in caplog.text


class TestPassThrough:
    @pytest.mark.parametrize(
        "request_headers",
        [headers(key=None), headers(key="   "), headers(tenant=None)],
        ids=["no-key", "blank-key", "no-tenant"],
    )
    def test_requests_outside_the_protocol_run_every_time(self, client, app, repository, request_headers):
        client.post("/transactions", content=b'{"amount": 1}', headers=request_headers)
        client.post("/transactions", content=b'{"amount": 1}', headers=request_headers)

        assert app.state.calls["create"] == 2
        assert len(repository) == 0

    def test_safe_methods_are_not_deduplicated(self, client, app):
        client.get("/transactions", headers=headers())
        client.get("/transactions", headers=headers())

        assert app.state.calls["list"] == 2

    def test_missing_service_passes_through(self):
        app = build_app(None, on_state=True)
        client = TestClient(app)

        client.post("/transactions", content=b'{"amount": 1}', headers=headers())
        client.post("/transactions", content=b'{"amount": 1}', headers=headers())

        assert app.state.calls["create"] == 2


def test_service_is_resolved_from_app_state(repository):
    app = build_app(IdempotencyService(repository), on_state=True)
    client = TestClient(app)

    client.post("/transactions", content=b'{"amount": 1}', headers=headers())
    client.post("/transactions", content=b'{"amount": 1}', headers=headers())

    assert app.state.calls["create"] == 1


def test_resolve_route_template(app):
    def scope(path, method="POST"):
        return {"type": "http", "path": path, "method": method, "app": app, "root_path": ""}

    assert resolve_route_template(scope("/transactions/55/payments")) == "/transactions/{transaction_id}/payments"
    assert resolve_route_template(scope("/transactions")) == "/transactions"
    assert resolve_route_template(scope("/transactions", method="DELETE")) == "/transactions"
    assert resolve_route_template(scope("/unknown")) == "/unknown"


def route_scope(app, path, method="POST"):
    return {"type": "http", "path": path, "method": method, "app": app, "root_path": ""}


def test_resolve_route_template_inside_included_routers():
    app = FastAPI()
    clients = APIRouter()
    nested = APIRouter()

    @clients.post("/clients/{client_id}")
    async def update_client(client_id: str):
        return {}

    @nested.post("/transactions/{transaction_id}/payments")
    async def pay(transaction_id: str):
        return {}

    clients.include_router(nested, prefix="/ledger")
    app.include_router(clients, prefix="/api/v1")

    assert resolve_route_template(route_scope(app, "/api/v1/clients/123")) == "/api/v1/clients/{client_id}"
    assert (
        resolve_route_template(route_scope(app, "/api/v1/ledger/transactions/9/payments"))
        == "/api/v1/ledger/transactions/{transaction_id}/payments"
    )


def test_resolve_route_template_under_a_mount_never_returns_the_mount_prefix():
    async def endpoint(request):
        return JSONResponse({})

    app = FastAPI(
        routes=[
            Mount(
                "/api",
                routes=[
                    Route("/a", endpoint, methods=["POST"]),
                    Route("/b/{item_id}", endpoint, methods=["POST"]),
                ],
            )
        ]
    )

    assert resolve_route_template(route_scope(app, "/api/a")) == "/api/a"
    assert resolve_route_template(route_scope(app, "/api/b/7")) == "/api/b/{item_id}"
    assert resolve_route_template(route_scope(app, "/api/c")) == "/api/c"


def test_keys_on_different_mounted_endpoints_do_not_collide(repository):
    calls = []

    async def endpoint(request):
        calls.append(request.url.path)
        return JSONResponse({"path": request.url.path}, status_code=201)

    app = FastAPI(
        routes=[
            Mount(
                "/api",
                routes=[Route("/a", endpoint, methods=["POST"]), Route("/b", endpoint, methods=["POST"])],
            )
        ]
    )
    app.add_middleware(IdempotencyMiddleware, service=IdempotencyService(repository))
    app.add_middleware(TenantScopeMiddleware)
    client = TestClient(app)

    first = client.post("/api/a", content=b"{}", headers=headers())
    second = client.post("/api/b", content=b"{}", headers=headers())

    assert first.json() == {"path": "/api/a"}
    assert second.json() == {"path": "/api/b"}
    assert calls == ["/api/a", "/api/b"]


def test_payment_key_is_shared_across_ids_in_an_included_router(repository):
    app = FastAPI()
    router = APIRouter()
    calls = []

    @router.post("/transactions/{transaction_id}/payments", status_code=201)
    async def pay(transaction_id: str):
        calls.append(transaction_id)
        return {"id": f"pay_{len(calls)}"}

    app.include_router(router, prefix="/api/v1")
    app.add_middleware(IdempotencyMiddleware, service=IdempotencyService(repository))
    app.add_middleware(TenantScopeMiddleware)
    client = TestClient(app)

    first = client.post("/api/v1/transactions/tx_1/payments", content=b"{}", headers=headers())
    second = client.post("/api/v1/transactions/tx_2/payments", content=b"{}", headers=headers())

    assert first.json() == second.json() == {"id": "pay_1"}
    assert calls == ["tx_1"]


def test_over_long_key_passes_through(client, app, repository, caplog):
    long_key = "k" * (MAX_IDEMPOTENCY_KEY_LENGTH + 1)

    client.post("/transactions", content=b'{"amount": 1}', headers=headers(key=long_key))
    client.post("/transactions", content=b'{"amount": 1}', headers=headers(key=long_key))

    assert app.state.calls["create"] == 2
    assert len(repository) == 0
    assert "Ignoring idempotency key longer than" in caplog.text


def test_key_at_the_length_limit_is_honoured(client, app):
    key = "k" * MAX_IDEMPOTENCY_KEY_LENGTH

    client.post("/transactions", content=b'{"amount": 1}', headers=headers(key=key))
    client.post("/transactions", content=b'{"amount": 1}', headers=headers(key=key))

    assert app.state.calls["create"] == 1


@pytest.mark.asyncio
async def test_response_cut_off_mid_stream_releases_the_key(repository):
    async def truncated_app(scope, receive, send):
        await receive()
        await send({"type": "http.response.start", "status": 201, "headers": []})
        await send({"type": "http.response.body", "body": b'{"id":', "more_body": True})

    middleware = IdempotencyMiddleware(truncated_app, service=IdempotencyService(repository))
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/transactions",
        "root_path": "",
        "query_string": b"",
        "headers": [(b"x-idempotency-key", b"abc123")],
        "state": {"tenant_id": 7},
    }
    sent = []

    async def receive():
        return {"type": "http.request", "body": b"{}", "more_body": False}

    async def send(message):
        sent.append(message)

    await middleware(scope, receive, send)

    assert [m["type"] for m in sent] == ["http.response.start", "http.response.body"]
    assert len(repository) == 0
