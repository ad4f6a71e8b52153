"""
Repository interfaces.
"""

from remitdesk.core.interfaces.repositories.idempotency_repository_interface import (
    IIdempotencyRepository,
)
from remitdesk.core.interfaces.repositories.security_event_repository_interface import (
    ISecurityEventRepository,
)

__all__ = ["IIdempotencyRepository", "ISecurityEventRepository"]
