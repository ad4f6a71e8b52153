"""
SQLAlchemy model for security events.

Counts repeated security-relevant events (for example authentication floods)
per identifier for later review.
"""

import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from remitdesk.domain.utils.datetime_utils import now_utc
from remitdesk.infrastructure.persistence.sqlalchemy.config.base import Base, TimestampMixin


class SecurityEventModel(TimestampMixin, Base):
    """Counter row for a security event source."""

    __tablename__ = "security_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # e.g. security_rate_limit_exceeded_203.0.113.9
    identifier: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    window_start: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False
    )
