"""
Core exceptions package.

This package contains all exceptions used throughout the application.
"""

from remitdesk.core.exceptions.application_error import ErrorCode
from remitdesk.core.exceptions.base_exceptions import (
    AuthenticationException,
    BaseAppException,
    RepositoryError,
)
from remitdesk.core.exceptions.idempotency_exceptions import (
    IdempotencyError,
    IdempotencyInProgressError,
    IdempotencyKeyReuseError,
    IdempotencyKeyUnavailableError,
    IdempotencyStorageError,
)
from remitdesk.core.exceptions.security_exceptions import (
    RateLimitExceededError,
    SecurityException,
)
from remitdesk.core.exceptions.token_exceptions import (
    InvalidTokenException,
    TokenException,
    TokenExpiredException,
)

__all__ = [
    "AuthenticationException",
    "BaseAppException",
    "ErrorCode",
    "IdempotencyError",
    "IdempotencyInProgressError",
    "IdempotencyKeyReuseError",
    "IdempotencyKeyUnavailableError",
    "IdempotencyStorageError",
    "InvalidTokenException",
    "RateLimitExceededError",
    "RepositoryError",
    "SecurityException",
    "TokenException",
    "TokenExpiredException",
]
