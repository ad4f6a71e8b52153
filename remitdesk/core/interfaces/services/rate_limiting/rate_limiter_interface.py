"""
Rate Limiter Interface Definition.

This module defines the core interface for rate limiting services,
enabling proper dependency inversion following Clean Architecture principles.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class RateLimitScope(str, Enum):
    """Scope for rate limiting rules."""

    IP = "ip"  # Per-IP address rate limit
    USER = "user"  # Per-user rate limit
    TENANT = "tenant"  # Per-tenant rate limit (with multiplier)
    SENSITIVE = "sensitive"  # Sensitive endpoint classes
    AUTH = "auth"  # Authentication attempts
    PAYMENT = "payment"  # Payment initiation


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for a rate limit rule."""

    # Maximum number of requests in time window
    requests: int

    # Time window in seconds
    window_seconds: float

    # Scope to categorize the rate limit
    scope: RateLimitScope = RateLimitScope.IP

    def __post_init__(self) -> None:
        if self.requests <= 0:
            raise ValueError("requests must be a positive integer")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")


class IRateLimiter(ABC):
    """
    Interface for rate limiting service implementations.

    One instance backs every rate limit policy in a process; policies differ
    only in the identifier, limit and window they pass.
    """

    @abstractmethod
    def check_rate_limit(self, identifier: str, limit: int, window_seconds: float) -> tuple[bool, float]:
        """
        Count a request against the window of ``identifier``.

        Args:
            identifier: Bucket name, e.g. ``"user_42"`` or ``"ip_1.2.3.4"``
            limit: Maximum requests allowed in the window
            window_seconds: Window length in seconds

        Returns:
            Tuple of (allowed, reset_at) where reset_at is a unix timestamp
        """

    @abstractmethod
    def evict_stale(self, retention_seconds: float) -> int:
        """
        Remove windows that started more than ``retention_seconds`` ago.

        Returns:
            Number of evicted identifiers
        """
