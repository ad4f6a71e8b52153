"""
Best-effort security event recording.

Events are written from detached tasks so the request path never waits on
the store, and any failure is logged and dropped.
"""

import asyncio
import logging

from remitdesk.core.interfaces.repositories import ISecurityEventRepository
from remitdesk.domain.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


class SecurityEventService:
    """Schedules security event writes without blocking the caller."""

    def __init__(self, repository: ISecurityEventRepository):
        self.repository = repository
        self._pending: set[asyncio.Task] = set()

    def log_event(self, event_type: str, ip_address: str, endpoint: str) -> asyncio.Task | None:
        """
        Schedule a write for ``event_type`` from ``ip_address``.

        Returns the detached task, or None when no event loop is running.
        """
        identifier = f"security_{event_type}_{ip_address}"
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; dropped security event {event_type}")
            return None

        task = loop.create_task(self._record(identifier, endpoint))
        # Keep a strong reference until the task finishes
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _record(self, identifier: str, endpoint: str) -> None:
        try:
            count = await self.repository.record(identifier, endpoint, now_utc())
            logger.info(f"Security event {identifier} on {endpoint} (count={count})")
        except Exception as e:
            logger.warning(f"Failed to record security event {identifier}: {e}")

    async def drain(self) -> None:
        """Wait for scheduled writes to finish (used on shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
