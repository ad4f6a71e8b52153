from remitdesk.application.services.idempotency_service import (
    IdempotencyOutcome,
    IdempotencyService,
    compute_request_hash,
)
from remitdesk.application.services.security_event_service import SecurityEventService

__all__ = [
    "IdempotencyOutcome",
    "IdempotencyService",
    "SecurityEventService",
    "compute_request_hash",
]
