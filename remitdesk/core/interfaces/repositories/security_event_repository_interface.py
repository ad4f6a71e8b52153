"""
Security event repository interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class ISecurityEventRepository(ABC):
    """Stores counters for security-relevant events such as auth floods."""

    @abstractmethod
    async def record(self, identifier: str, endpoint: str, occurred_at: datetime) -> int:
        """
        Create the event row for ``identifier`` or increment its counter.

        Returns:
            The counter value after this event
        """
