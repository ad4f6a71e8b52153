"""
Idempotency repository interface.

The store is the only concurrency control of the idempotency protocol:
``try_claim`` must be an atomic insert that fails when a record with the same
natural key exists, so that exactly one caller wins a key across processes.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from remitdesk.domain.entities.idempotency import IdempotencyKey, IdempotencyRecord


class IIdempotencyRepository(ABC):
    """Persistence contract for idempotency records.

    Every method raises ``IdempotencyStorageError`` when the store fails.
    """

    @abstractmethod
    async def try_claim(self, record: IdempotencyRecord) -> IdempotencyRecord | None:
        """
        Insert ``record``; fail if its natural key already exists.

        Returns:
            The stored record (with its id) when the insert won, None when a
            record with the same natural key already exists
        """

    @abstractmethod
    async def get(self, natural_key: IdempotencyKey) -> IdempotencyRecord | None:
        """Load the record for a natural key, or None if absent."""

    @abstractmethod
    async def mark_completed(
        self,
        record_id: int,
        *,
        status_code: int,
        response_body: bytes,
        completed_at: datetime,
        expires_at: datetime,
    ) -> bool:
        """
        Transition an IN_PROGRESS record to COMPLETED with the captured response.

        Returns:
            False when no IN_PROGRESS record with ``record_id`` exists
        """

    @abstractmethod
    async def release(self, record_id: int) -> bool:
        """Delete an IN_PROGRESS record by id. Returns whether a row was removed."""

    @abstractmethod
    async def delete_expired(self, record_id: int, now: datetime) -> bool:
        """
        Delete a record by id only if it expired before ``now``.

        A live record, even one that happens to carry ``record_id``, is left
        alone. Returns whether a row was removed.
        """

    @abstractmethod
    async def purge_expired(self, now: datetime) -> int:
        """Delete every record whose expiry has passed. Returns the count."""
