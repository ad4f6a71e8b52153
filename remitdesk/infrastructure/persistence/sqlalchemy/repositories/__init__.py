from remitdesk.infrastructure.persistence.sqlalchemy.repositories.idempotency_repository import (
    SQLAlchemyIdempotencyRepository,
)
from remitdesk.infrastructure.persistence.sqlalchemy.repositories.security_event_repository import (
    SQLAlchemySecurityEventRepository,
)

__all__ = ["SQLAlchemyIdempotencyRepository", "SQLAlchemySecurityEventRepository"]
