"""
Rate limiting infrastructure.
"""

from remitdesk.infrastructure.security.rate_limiting.sliding_window_limiter import (
    RateWindow,
    SlidingWindowRateLimiter,
)
from remitdesk.infrastructure.security.rate_limiting.sweeper import RateLimitSweeper

__all__ = ["RateLimitSweeper", "RateWindow", "SlidingWindowRateLimiter"]
