"""
Rate limit rejection responses.

Every limiter, whether applied as middleware or as a route dependency,
answers with the same 429 contract.
"""

import math
import time
from datetime import datetime, timezone

from starlette.responses import JSONResponse

from remitdesk.core.exceptions import RateLimitExceededError


def rate_limit_headers(limit: int, reset_at: float, now: float | None = None) -> dict[str, str]:
    """Headers announcing an exhausted budget."""
    now = time.time() if now is None else now
    retry_after = max(0, math.ceil(reset_at - now))
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": str(int(reset_at)),
        "Retry-After": str(retry_after),
    }


def rate_limited_response(
    error: str,
    *,
    limit: int,
    reset_at: float,
    message: str | None = None,
    now: float | None = None,
) -> JSONResponse:
    """
    Build the 429 response.

    Args:
        error: Short label, e.g. "Tenant rate limit exceeded"
        limit: The budget that was exhausted
        reset_at: Unix timestamp when the window resets
        message: Human readable retry hint; derived from reset_at if omitted
        now: Current unix time, injectable for tests
    """
    if message is None:
        reset_iso = datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()
        message = f"Rate limit exceeded. Try again after {reset_iso}"

    return JSONResponse(
        status_code=429,
        content={
            "error": error,
            "message": message,
            "retryAfter": int(reset_at),
        },
        headers=rate_limit_headers(limit, reset_at, now),
    )


def response_from_exception(exc: RateLimitExceededError) -> JSONResponse:
    return rate_limited_response(
        exc.error,
        limit=exc.limit,
        reset_at=exc.reset_at,
        message=exc.message,
    )
