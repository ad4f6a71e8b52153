"""
Transaction write endpoints.

These are the tenant-scoped writes guarded by the rate limiting and
idempotency layers: clients retry them with the same X-Idempotency-Key and
receive the original response instead of a duplicate ledger entry.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from remitdesk.core.exceptions import RepositoryError
from remitdesk.domain.entities.auth import AuthenticatedUser
from remitdesk.infrastructure.persistence.sqlalchemy.database import get_session
from remitdesk.infrastructure.persistence.sqlalchemy.models import PaymentModel, TransactionModel
from remitdesk.presentation.api.dependencies import (
    payment_rate_limit,
    require_tenant,
    require_user,
    sensitive_rate_limit,
    tenant_rate_limit,
)
from remitdesk.presentation.schemas.transaction import (
    PaymentCreate,
    PaymentResponse,
    TransactionCreate,
    TransactionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

TRANSACTION_PREFIX = "tx_"
PAYMENT_PREFIX = "pay_"


def _parse_transaction_id(public_id: str) -> int | None:
    if not public_id.startswith(TRANSACTION_PREFIX):
        return None
    try:
        return int(public_id[len(TRANSACTION_PREFIX):])
    except ValueError:
        return None


async def _save(session: AsyncSession, instance, what: str) -> None:
    try:
        session.add(instance)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to create {what}: {e}", exc_info=True)
        raise RepositoryError(f"Failed to create {what}", detail=str(e)) from e


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a transaction",
    dependencies=[Depends(tenant_rate_limit)],
)
async def create_transaction(
    payload: TransactionCreate,
    tenant_id: int = Depends(require_tenant),
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> TransactionResponse:
    transaction = TransactionModel(
        tenant_id=tenant_id,
        created_by=user.id,
        amount=payload.amount,
        currency=payload.currency,
        reference=payload.reference,
    )
    await _save(session, transaction, "transaction")
    logger.info(f"Created transaction {transaction.id} for tenant {tenant_id}")

    return TransactionResponse(
        id=f"{TRANSACTION_PREFIX}{transaction.id}",
        amount=transaction.amount,
        currency=transaction.currency,
        reference=transaction.reference,
        created_at=transaction.created_at,
    )


@router.post(
    "/{transaction_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a payment against a transaction",
    dependencies=[Depends(sensitive_rate_limit), Depends(payment_rate_limit)],
)
async def create_payment(
    transaction_id: str,
    payload: PaymentCreate,
    tenant_id: int = Depends(require_tenant),
    user: AuthenticatedUser = Depends(require_user),
    session: AsyncSession = Depends(get_session),
) -> PaymentResponse:
    db_id = _parse_transaction_id(transaction_id)
    transaction = None
    if db_id is not None:
        transaction = await session.scalar(
            select(TransactionModel).where(
                TransactionModel.id == db_id,
                TransactionModel.tenant_id == tenant_id,
            )
        )
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    payment = PaymentModel(
        tenant_id=tenant_id,
        transaction_id=transaction.id,
        created_by=user.id,
        amount=payload.amount,
        currency=payload.currency,
    )
    await _save(session, payment, "payment")

    return PaymentResponse(
        id=f"{PAYMENT_PREFIX}{payment.id}",
        transaction_id=transaction_id,
        amount=payment.amount,
        currency=payment.currency,
        created_at=payment.created_at,
    )
