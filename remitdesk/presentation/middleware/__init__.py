from remitdesk.presentation.middleware.authentication import AuthenticationMiddleware
from remitdesk.presentation.middleware.idempotency import IdempotencyMiddleware, resolve_route_template
from remitdesk.presentation.middleware.logging import LoggingMiddleware
from remitdesk.presentation.middleware.rate_limiting import RateLimitingMiddleware
from remitdesk.presentation.middleware.request_id import RequestIdMiddleware
from remitdesk.presentation.middleware.response_capture import ResponseCapture

__all__ = [
    "AuthenticationMiddleware",
    "IdempotencyMiddleware",
    "LoggingMiddleware",
    "RateLimitingMiddleware",
    "RequestIdMiddleware",
    "ResponseCapture",
    "resolve_route_template",
]
