"""
SQLAlchemy implementation of the security event repository.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remitdesk.core.exceptions import RepositoryError
from remitdesk.core.interfaces.repositories import ISecurityEventRepository
from remitdesk.infrastructure.persistence.sqlalchemy.models.security_event import SecurityEventModel

logger = logging.getLogger(__name__)


class SQLAlchemySecurityEventRepository(ISecurityEventRepository):
    """Security event counters stored in the ``security_events`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(self, identifier: str, endpoint: str, occurred_at: datetime) -> int:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    count = await self._increment(session, identifier, endpoint)
                    if count is not None:
                        return count
                    session.add(
                        SecurityEventModel(
                            identifier=identifier,
                            endpoint=endpoint,
                            count=1,
                            window_start=occurred_at,
                        )
                    )
                return 1
        except IntegrityError:
            # A concurrent writer created the row first; count this event on it
            return await self._increment_existing(identifier, endpoint)
        except SQLAlchemyError as e:
            logger.error(f"Error recording security event: {e}")
            raise RepositoryError("Failed to record security event", detail=str(e)) from e

    async def _increment_existing(self, identifier: str, endpoint: str) -> int:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    count = await self._increment(session, identifier, endpoint)
                return count or 0
        except SQLAlchemyError as e:
            logger.error(f"Error recording security event: {e}")
            raise RepositoryError("Failed to record security event", detail=str(e)) from e

    @staticmethod
    async def _increment(session: AsyncSession, identifier: str, endpoint: str) -> int | None:
        result = await session.execute(
            update(SecurityEventModel)
            .where(SecurityEventModel.identifier == identifier)
            .values(count=SecurityEventModel.count + 1, endpoint=endpoint)
        )
        if not result.rowcount:
            return None
        count = await session.scalar(
            select(SecurityEventModel.count).where(SecurityEventModel.identifier == identifier)
        )
        return count
