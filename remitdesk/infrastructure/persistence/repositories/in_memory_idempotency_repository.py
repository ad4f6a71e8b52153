"""
In-Memory Idempotency Repository.

Single-process implementation of IIdempotencyRepository. The natural-key
index enforces the same insert-or-fail semantics as the database unique
constraint, so the protocol behaves identically on top of it. Suitable for
tests and single-instance development; use the SQLAlchemy repository when
more than one process serves requests.
"""

import dataclasses
import itertools
import threading
from datetime import datetime

from remitdesk.core.interfaces.repositories import IIdempotencyRepository
from remitdesk.domain.entities.idempotency import IdempotencyKey, IdempotencyRecord, IdempotencyState


class InMemoryIdempotencyRepository(IIdempotencyRepository):
    """Lock-guarded dictionary of idempotency records."""

    def __init__(self) -> None:
        self._records: dict[int, IdempotencyRecord] = {}
        self._by_key: dict[IdempotencyKey, int] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    async def try_claim(self, record: IdempotencyRecord) -> IdempotencyRecord | None:
        with self._lock:
            natural_key = record.natural_key
            if natural_key in self._by_key:
                return None
            stored = dataclasses.replace(record, id=next(self._ids))
            self._records[stored.id] = stored
            self._by_key[natural_key] = stored.id
            return dataclasses.replace(stored)

    async def get(self, natural_key: IdempotencyKey) -> IdempotencyRecord | None:
        with self._lock:
            record_id = self._by_key.get(natural_key)
            if record_id is None:
                return None
            return dataclasses.replace(self._records[record_id])

    async def mark_completed(
        self,
        record_id: int,
        *,
        status_code: int,
        response_body: bytes,
        completed_at: datetime,
        expires_at: datetime,
    ) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.state != IdempotencyState.IN_PROGRESS:
                return False
            record.state = IdempotencyState.COMPLETED
            record.status_code = status_code
            record.response_body = bytes(response_body)
            record.completed_at = completed_at
            record.expires_at = expires_at
            return True

    async def release(self, record_id: int) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.state != IdempotencyState.IN_PROGRESS:
                return False
            self._delete_locked(record_id)
            return True

    async def delete_expired(self, record_id: int, now: datetime) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or not record.is_expired(now):
                return False
            self._delete_locked(record_id)
            return True

    async def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [record_id for record_id, record in self._records.items() if record.is_expired(now)]
            for record_id in expired:
                self._delete_locked(record_id)
            return len(expired)

    def _delete_locked(self, record_id: int) -> None:
        record = self._records.pop(record_id, None)
        if record is not None:
            self._by_key.pop(record.natural_key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
