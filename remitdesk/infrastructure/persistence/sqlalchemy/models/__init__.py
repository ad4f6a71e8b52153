"""SQLAlchemy models package.

Importing this package registers every table on the shared metadata.
"""

from remitdesk.infrastructure.persistence.sqlalchemy.config.base import Base, TimestampMixin

from .idempotency_record import IdempotencyRecordModel
from .security_event import SecurityEventModel
from .transaction import PaymentModel, TransactionModel

__all__ = [
    "Base",
    "IdempotencyRecordModel",
    "PaymentModel",
    "SecurityEventModel",
    "TimestampMixin",
    "TransactionModel",
]
