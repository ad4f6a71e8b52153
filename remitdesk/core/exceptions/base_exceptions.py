"""
Base exceptions for the application.

This module defines the foundational exception classes that form the basis of the
application's exception hierarchy.
"""

from typing import Any


class BaseAppException(Exception):
    """
    Base exception for all application exceptions.

    Attributes:
        message: A human-readable error message
        detail: Additional information about the error
        code: An error code for machine processing
    """

    def __init__(
        self,
        message: str,
        detail: str | list[str] | dict[str, Any] | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.detail = detail
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} - {self.detail}"
        return self.message


class AuthenticationException(BaseAppException):
    """Exception raised for authentication errors."""

    def __init__(
        self,
        message: str = "Authentication failed",
        detail: str | list[str] | dict[str, Any] | None = None,
        code: str = "AUTHENTICATION_ERROR",
    ) -> None:
        super().__init__(message=message, detail=detail, code=code)


class RepositoryError(BaseAppException):
    """Exception raised when the persistent store fails."""

    def __init__(
        self,
        message: str = "Repository operation failed",
        detail: str | list[str] | dict[str, Any] | None = None,
        code: str = "PERSISTENCE_ERROR",
    ) -> None:
        super().__init__(message=message, detail=detail, code=code)
