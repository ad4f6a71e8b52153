"""
SQLAlchemy base configuration.

This module provides the declarative base for SQLAlchemy models
and other shared SQLAlchemy-related functionality.

Follows SQLAlchemy 2.0 typing patterns.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from remitdesk.domain.utils.datetime_utils import now_utc
from remitdesk.infrastructure.persistence.sqlalchemy.registry import metadata


class Base(DeclarativeBase, AsyncAttrs):
    """
    SQLAlchemy 2.0 declarative base with async support.

    Combines DeclarativeBase for proper typing with AsyncAttrs for async support.
    """

    # Use the shared metadata from registry for consistency
    metadata = metadata

    def __repr__(self) -> str:
        attrs = [
            f"{key}={value!r}"
            for key, value in self.__dict__.items()
            if not key.startswith("_") and key != "response_body"
        ]
        return f"{self.__class__.__name__}({', '.join(attrs)})"


class TimestampMixin:
    """Mixin to add a created_at timestamp to models."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=now_utc, nullable=False
    )
