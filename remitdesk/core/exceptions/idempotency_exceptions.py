"""
Idempotency key protocol exceptions.

Each conflict carries the HTTP status it maps to so the middleware can render
``{"error": message}`` without a lookup table.
"""

from remitdesk.core.exceptions.application_error import ErrorCode
from remitdesk.core.exceptions.base_exceptions import BaseAppException, RepositoryError


class IdempotencyError(BaseAppException):
    """Base class for idempotency protocol failures."""

    status_code: int = 409


class IdempotencyKeyReuseError(IdempotencyError):
    """Same key presented with a different request body. Permanent for the key."""

    def __init__(self, message: str = "Idempotency key reuse with different request") -> None:
        super().__init__(message, code=ErrorCode.IDEMPOTENCY_KEY_REUSED.value)


class IdempotencyInProgressError(IdempotencyError):
    """Same key and body while the original request is still executing."""

    def __init__(self, message: str = "Request with this idempotency key is in progress") -> None:
        super().__init__(message, code=ErrorCode.IDEMPOTENCY_IN_PROGRESS.value)


class IdempotencyKeyUnavailableError(IdempotencyError):
    """Existing record in an unrecognised state, or reclaim attempts exhausted."""

    def __init__(self, message: str = "Idempotency key is not available") -> None:
        super().__init__(message, code=ErrorCode.IDEMPOTENCY_KEY_UNAVAILABLE.value)


class IdempotencyStorageError(RepositoryError):
    """The idempotency store failed during claim, lookup, update or delete."""

    status_code: int = 500

    def __init__(self, message: str = "Idempotency check failed", detail: str | None = None) -> None:
        super().__init__(message, detail=detail, code=ErrorCode.IDEMPOTENCY_STORAGE_ERROR.value)
