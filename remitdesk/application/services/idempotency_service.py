"""
Idempotency key protocol.

Claims a (tenant, key, route, method) natural key by inserting an IN_PROGRESS
record, resolves collisions against the stored record, and records the final
outcome of a claimed request. The repository's insert-or-fail claim is the
only concurrency control; nothing here takes an in-process lock.
"""

import asyncio
import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from remitdesk.core.exceptions import (
    IdempotencyInProgressError,
    IdempotencyKeyReuseError,
    IdempotencyKeyUnavailableError,
)
from remitdesk.core.interfaces.repositories import IIdempotencyRepository
from remitdesk.domain.entities.idempotency import IdempotencyKey, IdempotencyRecord, IdempotencyState
from remitdesk.domain.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 3600.0


def compute_request_hash(body: bytes) -> str:
    """SHA-256 hex digest of the raw request body."""
    return hashlib.sha256(body).hexdigest()


@dataclass(frozen=True)
class IdempotencyOutcome:
    """
    Result of ``IdempotencyService.begin``.

    Either the caller claimed the key and must run the handler (``replay`` is
    False), or a completed record exists and its response is replayed.
    """

    record: IdempotencyRecord
    replay: bool = False

    @property
    def claimed(self) -> bool:
        return not self.replay

    @property
    def status_code(self) -> int:
        return self.record.status_code or 200

    @property
    def body(self) -> bytes:
        return self.record.response_body or b""


class IdempotencyService:
    """Runs the claim / replay / conflict state machine against a repository."""

    def __init__(
        self,
        repository: IIdempotencyRepository,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        reclaim_attempts: int = 3,
        reclaim_backoff_seconds: float = 0.05,
        clock: Callable[[], datetime] = now_utc,
    ):
        """
        Args:
            repository: Store providing insert-or-fail claims
            ttl_seconds: Retention of records; non-positive means 24 hours
            reclaim_attempts: How many times an expired record may be deleted
                and the key re-claimed before giving up
            reclaim_backoff_seconds: Base delay between reclaim attempts after
                losing a race
            clock: Source of aware UTC datetimes
        """
        self.repository = repository
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds > 0 else DEFAULT_TTL_SECONDS)
        self.reclaim_attempts = max(1, reclaim_attempts)
        self.reclaim_backoff_seconds = reclaim_backoff_seconds
        self._clock = clock

    async def begin(
        self,
        natural_key: IdempotencyKey,
        request_hash: str,
        user_id: int | None = None,
    ) -> IdempotencyOutcome:
        """
        Claim ``natural_key`` or resolve it against the existing record.

        Returns:
            A claimed outcome (run the handler, then call ``finish``) or a
            replay outcome carrying the stored response

        Raises:
            IdempotencyKeyReuseError: Stored record has a different body hash
            IdempotencyInProgressError: Original request is still executing
            IdempotencyKeyUnavailableError: Unknown state, or reclaims exhausted
            IdempotencyStorageError: The store failed
        """
        claimed = await self._try_claim(natural_key, request_hash, user_id)
        if claimed is not None:
            return IdempotencyOutcome(claimed)

        existing = await self.repository.get(natural_key)
        attempts = 0
        while existing is None or existing.is_expired(self._clock()):
            if attempts >= self.reclaim_attempts:
                logger.warning(
                    f"Gave up reclaiming idempotency key on {natural_key.method} {natural_key.route} "
                    f"after {attempts} attempts"
                )
                raise IdempotencyKeyUnavailableError()
            if attempts:
                await asyncio.sleep(self.reclaim_backoff_seconds * attempts)
            attempts += 1

            if existing is not None:
                # No-op when a racing caller already replaced the expired record
                await self.repository.delete_expired(existing.id, self._clock())

            claimed = await self._try_claim(natural_key, request_hash, user_id)
            if claimed is not None:
                logger.debug(f"Reclaimed expired idempotency key on {natural_key.method} {natural_key.route}")
                return IdempotencyOutcome(claimed)
            existing = await self.repository.get(natural_key)

        return self._resolve(existing, request_hash)

    async def finish(self, record: IdempotencyRecord, status_code: int, body: bytes) -> None:
        """
        Record the outcome of a claimed request.

        2xx responses complete the record and start its retention window;
        anything else deletes it so the operation can be retried cleanly.
        Only the caller's own IN_PROGRESS record is touched.
        """
        if 200 <= status_code < 300:
            now = self._clock()
            updated = await self.repository.mark_completed(
                record.id,
                status_code=status_code,
                response_body=body,
                completed_at=now,
                expires_at=now + self.ttl,
            )
        else:
            updated = await self.repository.release(record.id)
        if not updated:
            logger.warning(
                f"Idempotency claim on {record.method} {record.route} was no longer held "
                f"when recording status {status_code}"
            )

    async def _try_claim(
        self, natural_key: IdempotencyKey, request_hash: str, user_id: int | None
    ) -> IdempotencyRecord | None:
        now = self._clock()
        candidate = IdempotencyRecord(
            tenant_id=natural_key.tenant_id,
            key=natural_key.key,
            route=natural_key.route,
            method=natural_key.method,
            request_hash=request_hash,
            created_at=now,
            expires_at=now + self.ttl,
            user_id=user_id,
        )
        return await self.repository.try_claim(candidate)

    @staticmethod
    def _resolve(existing: IdempotencyRecord, request_hash: str) -> IdempotencyOutcome:
        if not existing.matches(request_hash):
            raise IdempotencyKeyReuseError()
        if existing.state == IdempotencyState.IN_PROGRESS:
            raise IdempotencyInProgressError()
        if existing.state == IdempotencyState.COMPLETED:
            return IdempotencyOutcome(existing, replay=True)
        raise IdempotencyKeyUnavailableError()
