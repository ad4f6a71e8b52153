"""
Rate Limiting Middleware.

Global per-user (or per-IP for anonymous callers) budget applied to every
request before routing. Endpoint-specific policies are applied by the
dependencies in ``remitdesk.presentation.api.dependencies.rate_limiter``
against the same shared limiter.
"""

import logging
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from remitdesk.core.interfaces.services.rate_limiting import IRateLimiter
from remitdesk.core.security.rate_limiting import rate_limited_response, user_or_ip_identifier

logger = logging.getLogger(__name__)


class RateLimitingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for global rate limiting.

    Fails open: if the limiter raises, the request is allowed through.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limiter: IRateLimiter,
        limit: int = 100,
        window_seconds: float = 60,
        exclude_paths: list[str] | None = None,
        key_func: Callable[[Request], str] | None = None,
    ):
        """
        Initialize rate limiting middleware.

        Args:
            app: ASGI application
            limiter: The process-wide rate limiter
            limit: Requests allowed per window
            window_seconds: Window length in seconds
            exclude_paths: Path prefixes skipped by the limiter
            key_func: Function to extract the client identifier from a request
        """
        super().__init__(app)
        self.limiter = limiter
        self.limit = limit
        self.window_seconds = window_seconds
        self.exclude_paths = exclude_paths or []
        self.key_func = key_func or user_or_ip_identifier
        logger.info(f"Rate limiting middleware initialized with exclude paths: {self.exclude_paths}")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.exclude_paths):
            return await call_next(request)

        try:
            identifier = self.key_func(request)
            allowed, reset_at = self.limiter.check_rate_limit(identifier, self.limit, self.window_seconds)
        except Exception as e:
            # Log error but allow the request to proceed when the limiter fails
            logger.error(f"Rate limiting error: {e}", exc_info=True)
            return await call_next(request)

        if not allowed:
            logger.warning(f"Global rate limit exceeded: {identifier} ({self.limit}) at {path}")
            return rate_limited_response("Rate limit exceeded", limit=self.limit, reset_at=reset_at)

        return await call_next(request)
