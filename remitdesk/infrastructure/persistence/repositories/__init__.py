from remitdesk.infrastructure.persistence.repositories.in_memory_idempotency_repository import (
    InMemoryIdempotencyRepository,
)

__all__ = ["InMemoryIdempotencyRepository"]
