"""
SQLAlchemy model for idempotency records.

The unique constraint over (tenant_id, key, route, method) is what makes
claiming a key atomic: the insert either wins or raises an integrity error.
Ids are never reused (AUTOINCREMENT on SQLite), so a stale caller holding an
old id cannot touch a newer claim on the same key.
"""

import datetime

from sqlalchemy import DateTime, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from remitdesk.domain.entities.idempotency import MAX_IDEMPOTENCY_KEY_LENGTH
from remitdesk.infrastructure.persistence.sqlalchemy.config.base import Base, TimestampMixin


class IdempotencyRecordModel(TimestampMixin, Base):
    """Stored outcome of an idempotent write request."""

    __tablename__ = "idempotency_records"
    __table_args__ = (
        UniqueConstraint("tenant_id", "key", "route", "method", name="uidx_idem"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    key: Mapped[str] = mapped_column(String(MAX_IDEMPOTENCY_KEY_LENGTH), nullable=False)
    # Route template when available, e.g. /api/v1/transactions/{transaction_id}/payments
    route: Mapped[str] = mapped_column(String(255), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)

    request_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    state: Mapped[str] = mapped_column(String(20), nullable=False, default="IN_PROGRESS", index=True)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Raw response bytes (typically JSON)
    response_body: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    expires_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
