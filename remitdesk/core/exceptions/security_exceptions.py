"""
Security-related exceptions raised by the write-path guard.
"""

from datetime import datetime, timezone

from remitdesk.core.exceptions.application_error import ErrorCode
from remitdesk.core.exceptions.base_exceptions import BaseAppException


class SecurityException(BaseAppException):
    """Base class for all security-related exceptions."""


class RateLimitExceededError(SecurityException):
    """
    Exception raised when a rate limit budget is exhausted.

    Carries everything needed to render the 429 contract: the limit that was
    breached, the reset time (epoch seconds) and the short error label.
    """

    def __init__(
        self,
        error: str = "Too many requests",
        *,
        limit: int,
        reset_at: float,
        message: str | None = None,
    ) -> None:
        self.error = error
        self.limit = limit
        self.reset_at = reset_at
        if message is None:
            reset_iso = datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()
            message = f"Rate limit exceeded. Try again after {reset_iso}"
        super().__init__(
            message,
            detail={"limit": limit, "reset_at": int(reset_at)},
            code=ErrorCode.RATE_LIMIT_EXCEEDED.value,
        )
