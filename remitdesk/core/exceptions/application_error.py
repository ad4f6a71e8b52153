"""
Application-specific error codes.

This module defines error codes shared by every layer so that logs, monitoring
and client-side error handling agree on the same identifiers.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for the application."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Validation and data errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Authentication and authorization errors
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Infrastructure errors
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"

    # Write-path guard errors
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    IDEMPOTENCY_KEY_REUSED = "IDEMPOTENCY_KEY_REUSED"
    IDEMPOTENCY_IN_PROGRESS = "IDEMPOTENCY_IN_PROGRESS"
    IDEMPOTENCY_KEY_UNAVAILABLE = "IDEMPOTENCY_KEY_UNAVAILABLE"
    IDEMPOTENCY_STORAGE_ERROR = "IDEMPOTENCY_STORAGE_ERROR"
