"""
Periodic eviction task for the rate limiter.

Runs on an interval independent of request traffic. Started from the
application lifespan and cancelled on shutdown; tests drive ``run_once``
directly or start/stop the task explicitly.
"""

import asyncio
import logging

from remitdesk.core.interfaces.repositories import IIdempotencyRepository
from remitdesk.core.interfaces.services.rate_limiting import IRateLimiter
from remitdesk.domain.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Cancellable periodic sweep of stale rate limit windows."""

    def __init__(
        self,
        limiter: IRateLimiter,
        *,
        interval_seconds: float = 300.0,
        retention_seconds: float = 600.0,
        idempotency_repository: IIdempotencyRepository | None = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.limiter = limiter
        self.interval_seconds = interval_seconds
        self.retention_seconds = retention_seconds
        self.idempotency_repository = idempotency_repository
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="rate-limit-sweeper")
        logger.info(
            f"Rate limit sweeper started (interval={self.interval_seconds}s, "
            f"retention={self.retention_seconds}s)"
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
        logger.info("Rate limit sweeper stopped")

    async def run_once(self) -> int:
        """Run a single sweep. Returns the number of evicted windows."""
        evicted = self.limiter.evict_stale(self.retention_seconds)

        if self.idempotency_repository is not None:
            try:
                purged = await self.idempotency_repository.purge_expired(now_utc())
                if purged:
                    logger.debug(f"Purged {purged} expired idempotency records")
            except Exception as e:
                # Expired records are reclaimed lazily; a failed purge only delays cleanup
                logger.warning(f"Idempotency purge failed: {e}")

        return evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Rate limit sweep failed: {e}", exc_info=True)
