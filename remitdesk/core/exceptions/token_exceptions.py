"""
Exception classes related to authentication tokens.
"""

from remitdesk.core.exceptions.base_exceptions import AuthenticationException


class TokenException(AuthenticationException):
    """Base class for token-related exceptions."""

    status_code = 401


class InvalidTokenException(TokenException):
    """Raised when a token is invalid."""

    def __init__(self, message: str = "Invalid authentication token", detail: str | None = None) -> None:
        super().__init__(message, detail=detail, code="INVALID_TOKEN")


class TokenExpiredException(TokenException):
    """Raised when a token has expired."""

    def __init__(self, message: str = "Authentication token has expired") -> None:
        super().__init__(message, code="TOKEN_EXPIRED")
