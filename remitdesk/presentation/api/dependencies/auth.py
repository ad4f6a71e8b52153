"""
Request context dependencies populated by the authentication middleware.
"""

from fastapi import HTTPException, Request, status

from remitdesk.core.security.rate_limiting.identifiers import get_current_user, get_tenant_id
from remitdesk.domain.entities.auth import AuthenticatedUser


def require_user(request: Request) -> AuthenticatedUser:
    user = get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_tenant(request: Request) -> int:
    """Tenant of the caller; tenant-scoped writes are refused for unscoped callers."""
    tenant_id = get_tenant_id(request)
    if tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="A tenant context is required for this operation",
        )
    return tenant_id
