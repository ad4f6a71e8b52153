"""
In-Memory Sliding Window Rate Limiter.

This module provides the process-wide implementation of the IRateLimiter
interface. Windows are fixed-length counting intervals that reset entirely
once their start ages past the window length. All policies share one table,
so identifiers are namespaced by the caller (``user_42``, ``ip_1.2.3.4``,
``tenant_7``) to keep buckets independent.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from remitdesk.core.interfaces.services.rate_limiting import IRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    """Counting window for a single identifier."""

    count: int
    window_start: float


class SlidingWindowRateLimiter(IRateLimiter):
    """
    Mutex-guarded table of counting windows keyed by identifier.

    Safe for concurrent callers from any thread or event loop; each check is
    a single critical section with no I/O inside it.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize empty rate limit state storage.

        Args:
            clock: Source of unix timestamps, injectable for tests
        """
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def check_rate_limit(self, identifier: str, limit: int, window_seconds: float) -> tuple[bool, float]:
        """
        Count a request against the window of ``identifier``.

        A rejected request does not increment the counter, so hammering a
        limited bucket never extends its reset time.

        Args:
            identifier: Bucket name
            limit: Maximum requests allowed in the window
            window_seconds: Window length in seconds

        Returns:
            Tuple of (allowed, reset_at)
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")
        if limit <= 0:
            raise ValueError("limit must be a positive integer")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        with self._lock:
            now = self._clock()
            window = self._windows.get(identifier)

            if window is None or now - window.window_start > window_seconds:
                self._windows[identifier] = RateWindow(count=1, window_start=now)
                return True, now + window_seconds

            reset_at = window.window_start + window_seconds
            if window.count >= limit:
                return False, reset_at

            window.count += 1
            return True, reset_at

    def evict_stale(self, retention_seconds: float) -> int:
        """
        Remove windows that started more than ``retention_seconds`` ago.

        Args:
            retention_seconds: Age after which an idle window is dropped

        Returns:
            Number of evicted identifiers
        """
        with self._lock:
            now = self._clock()
            stale = [
                identifier
                for identifier, window in self._windows.items()
                if now - window.window_start > retention_seconds
            ]
            for identifier in stale:
                del self._windows[identifier]

        if stale:
            logger.debug(f"Evicted {len(stale)} stale rate limit windows")
        return len(stale)

    def get_window(self, identifier: str) -> RateWindow | None:
        """Snapshot of the window for ``identifier`` (for diagnostics and tests)."""
        with self._lock:
            window = self._windows.get(identifier)
            if window is None:
                return None
            return RateWindow(count=window.count, window_start=window.window_start)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
