"""
Rate limiting service interfaces.
"""

from remitdesk.core.interfaces.services.rate_limiting.rate_limiter_interface import (
    IRateLimiter,
    RateLimitConfig,
    RateLimitScope,
)

__all__ = ["IRateLimiter", "RateLimitConfig", "RateLimitScope"]
