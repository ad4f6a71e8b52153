import json
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from remitdesk.core.security.rate_limiting.identifiers import get_client_ip

# Headers that are safe to log. Authorization and the idempotency key never are.
SAFE_HEADERS_ALLOWLIST = {
    "accept",
    "accept-encoding",
    "accept-language",
    "user-agent",
}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one JSON line per finished request."""

    def __init__(self, app: ASGIApp, logger: logging.Logger | None = None) -> None:
        super().__init__(app)
        self.logger = logger or logging.getLogger(__name__)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.time()
        request_id = getattr(request.state, "request_id", "N/A")

        safe_headers = {k: v for k, v in request.headers.items() if k.lower() in SAFE_HEADERS_ALLOWLIST}

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            self.logger.error(
                f"Request failed: {request.method} {request.url.path} {request_id} "
                f"| Duration: {process_time:.2f}ms | Error: {e}",
                exc_info=True,
            )
            raise

        process_time = (time.time() - start_time) * 1000
        status_code = response.status_code
        log_level = logging.WARNING if status_code in (409, 429) else logging.INFO
        self.logger.log(
            log_level,
            json.dumps({
                "message": "Request finished",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": get_client_ip(request),
                "headers": safe_headers,
                "status_code": status_code,
                "duration_ms": round(process_time, 2),
            }),
        )
        return response
