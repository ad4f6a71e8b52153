"""
Idempotency record domain entity.

A record is identified by its natural key (tenant, key, route template, method)
and moves through a small state machine:

    absent --claim--> IN_PROGRESS --2xx--> COMPLETED (replayed until expiry)
                          |
                          +--non-2xx--> deleted (absent again)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from remitdesk.domain.utils.datetime_utils import ensure_utc

# Longest client key that is stored; longer keys are treated as malformed
MAX_IDEMPOTENCY_KEY_LENGTH = 128


class IdempotencyState(str, Enum):
    """Lifecycle state of an idempotency record."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class IdempotencyKey:
    """Natural key of an idempotency record."""

    tenant_id: int
    key: str
    route: str
    method: str


@dataclass
class IdempotencyRecord:
    """Persisted outcome of an idempotent write request."""

    tenant_id: int
    key: str
    route: str
    method: str
    request_hash: str
    created_at: datetime
    expires_at: datetime
    state: IdempotencyState = IdempotencyState.IN_PROGRESS
    status_code: int = 0
    response_body: bytes | None = None
    completed_at: datetime | None = None
    user_id: int | None = None
    id: int | None = field(default=None)

    @property
    def natural_key(self) -> IdempotencyKey:
        return IdempotencyKey(
            tenant_id=self.tenant_id,
            key=self.key,
            route=self.route,
            method=self.method,
        )

    def is_expired(self, now: datetime) -> bool:
        """A record whose expiry has passed is treated as absent."""
        return ensure_utc(self.expires_at) < ensure_utc(now)

    def matches(self, request_hash: str) -> bool:
        return self.request_hash == request_hash
