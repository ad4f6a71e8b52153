"""
Idempotency Middleware.

Pure ASGI middleware deduplicating retried write requests that carry an
``X-Idempotency-Key`` header. Keys are scoped by tenant, matched route
template and method. A claimed request runs the handler through
``ResponseCapture`` and its outcome is persisted once the response has been
sent; duplicates are answered from the store without reaching the handler.

The middleware is a no-op for safe methods, requests without a key and
requests without a tenant scope (super admins, public endpoints).
"""

import logging
import re
from collections.abc import Iterable, Iterator
from functools import lru_cache

import fastapi.routing
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import BaseRoute, Mount, compile_path
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from remitdesk.application.services.idempotency_service import IdempotencyService, compute_request_hash
from remitdesk.core.exceptions import IdempotencyError, IdempotencyStorageError
from remitdesk.core.security.rate_limiting.identifiers import get_current_user, get_tenant_id
from remitdesk.domain.entities.idempotency import (
    MAX_IDEMPOTENCY_KEY_LENGTH,
    IdempotencyKey,
    IdempotencyRecord,
)
from remitdesk.presentation.middleware.response_capture import ResponseCapture

logger = logging.getLogger(__name__)


def _route_paths(routes: Iterable[BaseRoute]) -> Iterator[tuple[BaseRoute, str | None]]:
    # Newer FastAPI keeps included routers as one opaque route; expand them
    # into their effective routes, whose paths carry the include prefix.
    iter_route_contexts = getattr(fastapi.routing, "iter_route_contexts", None)
    if iter_route_contexts is None:
        for route in routes:
            yield route, getattr(route, "path", None)
        return
    for context in iter_route_contexts(list(routes)):
        yield context.original_route, context.path


def iter_route_templates(routes: Iterable[BaseRoute], prefix: str = "") -> Iterator[tuple[str, BaseRoute]]:
    """
    Yield ``(path template, endpoint route)`` for every endpoint reachable
    from ``routes``, descending into mounts and included routers.
    """
    for route, path in _route_paths(routes):
        children = getattr(route, "routes", None)
        if isinstance(route, Mount) or children:
            yield from iter_route_templates(children or [], prefix + (path or "").rstrip("/"))
        elif path is not None:
            yield prefix + path, route


@lru_cache(maxsize=1024)
def _template_regex(template: str) -> re.Pattern[str]:
    regex, _, _ = compile_path(template)
    return regex


def resolve_route_template(scope: Scope) -> str:
    """
    Path pattern of the route that will serve ``scope``.

    ``/api/v1/transactions/12/payments`` resolves to
    ``/api/v1/transactions/{transaction_id}/payments``, also when the route
    lives in an included router or under a mount. A route matching the path
    but not the method is used only when nothing matches both. Falls back to
    the literal path when no route matches.
    """
    router = scope.get("router") or getattr(scope.get("app"), "router", None)
    path = scope["path"]
    partial = None
    for template, route in iter_route_templates(getattr(router, "routes", None) or []):
        if not _template_regex(template).match(path):
            continue
        methods = getattr(route, "methods", None)
        if not methods or scope["method"] in methods:
            return template
        if partial is None:
            partial = template
    return partial if partial is not None else path


class IdempotencyMiddleware:
    """Deduplicate unsafe requests by idempotency key."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        service: IdempotencyService | None = None,
        header: str = "X-Idempotency-Key",
        methods: Iterable[str] = ("POST",),
        exclude_paths: list[str] | None = None,
    ) -> None:
        """
        Args:
            app: Downstream ASGI application
            service: Protocol service; when omitted it is read from
                ``app.state.idempotency_service`` on each request so it can
                be created in the lifespan
            header: Request header carrying the key
            methods: Methods the protocol applies to
            exclude_paths: Path prefixes never deduplicated
        """
        self.app = app
        self.service = service
        self.header = header
        self.methods = frozenset(method.upper() for method in methods)
        self.exclude_paths = exclude_paths or []

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in self.methods:
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        key = (request.headers.get(self.header) or "").strip()
        if not key or any(scope["path"].startswith(excluded) for excluded in self.exclude_paths):
            await self.app(scope, receive, send)
            return
        if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            logger.warning(
                f"Ignoring idempotency key longer than {MAX_IDEMPOTENCY_KEY_LENGTH} characters "
                f"on {scope['method']} {scope['path']}"
            )
            await self.app(scope, receive, send)
            return

        tenant_id = get_tenant_id(request)
        if tenant_id is None:
            await self.app(scope, receive, send)
            return

        service = self._get_service(scope)
        if service is None:
            logger.warning("Idempotency service not configured; passing request through")
            await self.app(scope, receive, send)
            return

        body, disconnected = await self._read_body(receive)
        if disconnected:
            return

        natural_key = IdempotencyKey(
            tenant_id=tenant_id,
            key=key,
            route=resolve_route_template(scope),
            method=scope["method"],
        )
        user = get_current_user(request)

        try:
            outcome = await service.begin(
                natural_key,
                compute_request_hash(body),
                user_id=user.id if user is not None else None,
            )
        except IdempotencyStorageError as e:
            logger.error(f"Idempotency check failed on {natural_key.method} {natural_key.route}: {e}", exc_info=True)
            response: Response = JSONResponse(status_code=e.status_code, content={"error": e.message})
            await response(scope, receive, send)
            return
        except IdempotencyError as e:
            logger.info(f"Idempotency conflict on {natural_key.method} {natural_key.route}: {e.message}")
            response = JSONResponse(status_code=e.status_code, content={"error": e.message})
            await response(scope, receive, send)
            return

        if outcome.replay:
            logger.info(f"Replaying stored response for {natural_key.method} {natural_key.route}")
            response = Response(
                content=outcome.body,
                status_code=outcome.status_code,
                media_type="application/json",
            )
            await response(scope, receive, send)
            return

        capture = ResponseCapture(send)
        try:
            await self.app(scope, self._replay_receive(body, receive), capture)
        except Exception:
            await self._finish(service, outcome.record, 500, b"")
            raise
        if not capture.complete:
            # A truncated body must never be replayed
            logger.warning(f"Response to {natural_key.method} {natural_key.route} ended before the final body chunk")
            await self._finish(service, outcome.record, 500, b"")
            return
        await self._finish(service, outcome.record, capture.status_code, capture.body)

    def _get_service(self, scope: Scope) -> IdempotencyService | None:
        if self.service is not None:
            return self.service
        app = scope.get("app")
        return getattr(getattr(app, "state", None), "idempotency_service", None)

    @staticmethod
    async def _read_body(receive: Receive) -> tuple[bytes, bool]:
        chunks: list[bytes] = []
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return b"", True
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)
        return b"".join(chunks), False

    @staticmethod
    def _replay_receive(body: bytes, receive: Receive) -> Receive:
        sent = False

        async def replay() -> Message:
            nonlocal sent
            if not sent:
                sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        return replay

    @staticmethod
    async def _finish(service: IdempotencyService, record: IdempotencyRecord, status_code: int, body: bytes) -> None:
        # The response has already been sent, so a failure here can only be logged
        try:
            await service.finish(record, status_code, body)
        except Exception as e:
            logger.error(
                f"Failed to persist idempotency outcome for {record.method} {record.route} "
                f"(status={status_code}): {e}",
                exc_info=True,
            )
