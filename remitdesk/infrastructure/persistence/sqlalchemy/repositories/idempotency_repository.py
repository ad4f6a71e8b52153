"""
SQLAlchemy implementation of the idempotency repository.

Each operation runs in its own short transaction so that a claim is visible
to concurrent requests (and other replicas) the moment it commits.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remitdesk.core.exceptions import IdempotencyStorageError
from remitdesk.core.interfaces.repositories import IIdempotencyRepository
from remitdesk.domain.entities.idempotency import IdempotencyKey, IdempotencyRecord, IdempotencyState
from remitdesk.domain.utils.datetime_utils import ensure_utc
from remitdesk.infrastructure.persistence.sqlalchemy.models.idempotency_record import (
    IdempotencyRecordModel,
)

logger = logging.getLogger(__name__)


class SQLAlchemyIdempotencyRepository(IIdempotencyRepository):
    """Idempotency records stored in the ``idempotency_records`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize the repository with a session factory.

        Args:
            session_factory: Factory producing independent async sessions
        """
        self._session_factory = session_factory

    async def try_claim(self, record: IdempotencyRecord) -> IdempotencyRecord | None:
        model = self._to_model(record)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(model)
                    await session.flush()
                return self._to_entity(model)
        except IntegrityError:
            # Unique constraint on the natural key: another caller holds the key
            return None
        except SQLAlchemyError as e:
            logger.error(f"Error claiming idempotency key: {e}")
            raise IdempotencyStorageError(detail=str(e)) from e

    async def get(self, natural_key: IdempotencyKey) -> IdempotencyRecord | None:
        query = select(IdempotencyRecordModel).where(
            IdempotencyRecordModel.tenant_id == natural_key.tenant_id,
            IdempotencyRecordModel.key == natural_key.key,
            IdempotencyRecordModel.route == natural_key.route,
            IdempotencyRecordModel.method == natural_key.method,
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                model = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"Error loading idempotency record: {e}")
            raise IdempotencyStorageError(detail=str(e)) from e

        if model is None:
            return None
        return self._to_entity(model)

    async def mark_completed(
        self,
        record_id: int,
        *,
        status_code: int,
        response_body: bytes,
        completed_at: datetime,
        expires_at: datetime,
    ) -> bool:
        statement = (
            update(IdempotencyRecordModel)
            .where(
                IdempotencyRecordModel.id == record_id,
                IdempotencyRecordModel.state == IdempotencyState.IN_PROGRESS.value,
            )
            .values(
                state=IdempotencyState.COMPLETED.value,
                status_code=status_code,
                response_body=response_body,
                completed_at=completed_at,
                expires_at=expires_at,
            )
        )
        return await self._execute(statement, "completing") > 0

    async def release(self, record_id: int) -> bool:
        statement = delete(IdempotencyRecordModel).where(
            IdempotencyRecordModel.id == record_id,
            IdempotencyRecordModel.state == IdempotencyState.IN_PROGRESS.value,
        )
        return await self._execute(statement, "releasing") > 0

    async def delete_expired(self, record_id: int, now: datetime) -> bool:
        statement = delete(IdempotencyRecordModel).where(
            IdempotencyRecordModel.id == record_id,
            IdempotencyRecordModel.expires_at < now,
        )
        return await self._execute(statement, "reclaiming") > 0

    async def purge_expired(self, now: datetime) -> int:
        statement = delete(IdempotencyRecordModel).where(IdempotencyRecordModel.expires_at < now)
        return await self._execute(statement, "purging")

    async def _execute(self, statement, action: str) -> int:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(statement)
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error {action} idempotency record: {e}")
            raise IdempotencyStorageError(detail=str(e)) from e

    @staticmethod
    def _to_model(record: IdempotencyRecord) -> IdempotencyRecordModel:
        return IdempotencyRecordModel(
            tenant_id=record.tenant_id,
            user_id=record.user_id,
            key=record.key,
            route=record.route,
            method=record.method,
            request_hash=record.request_hash,
            state=record.state.value,
            status_code=record.status_code,
            response_body=record.response_body,
            created_at=record.created_at,
            expires_at=record.expires_at,
            completed_at=record.completed_at,
        )

    @staticmethod
    def _to_entity(model: IdempotencyRecordModel) -> IdempotencyRecord:
        try:
            state = IdempotencyState(model.state)
        except ValueError:
            # Unknown states are surfaced as-is and rejected by the service
            state = model.state
        return IdempotencyRecord(
            id=model.id,
            tenant_id=model.tenant_id,
            user_id=model.user_id,
            key=model.key,
            route=model.route,
            method=model.method,
            request_hash=model.request_hash,
            state=state,
            status_code=model.status_code,
            response_body=model.response_body,
            created_at=ensure_utc(model.created_at),
            expires_at=ensure_utc(model.expires_at),
            completed_at=ensure_utc(model.completed_at),
        )
