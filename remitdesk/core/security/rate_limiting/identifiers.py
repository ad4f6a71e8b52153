"""
Rate limit identifier derivation.

Pure functions that turn request context into bucket names for the shared
limiter table. Prefixes keep policies from colliding: ``user_1`` and
``ip_9.9.9.9`` never share a window.
"""

from starlette.requests import Request

from remitdesk.domain.entities.auth import AuthenticatedUser


def get_client_ip(request: Request) -> str:
    """
    Extract the real client IP address.

    Prefers the first ``X-Forwarded-For`` entry, then ``X-Real-IP``, then the
    connection address without its port.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First address is the client, the rest are proxies
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return strip_port(request.client.host)

    return "unknown"


def strip_port(address: str) -> str:
    """Drop a trailing ``:port`` from ``host:port`` or ``[v6]:port`` addresses."""
    if address.startswith("["):
        end = address.find("]")
        if end != -1:
            return address[1:end]
    if address.count(":") == 1:
        return address.rsplit(":", 1)[0]
    return address


def get_current_user(request: Request) -> AuthenticatedUser | None:
    """Authenticated user set by the authentication middleware, if any."""
    user = getattr(request.state, "user", None)
    if isinstance(user, AuthenticatedUser):
        return user
    return None


def get_tenant_id(request: Request) -> int | None:
    """Tenant scope of the request; None for unscoped and super-admin callers."""
    return getattr(request.state, "tenant_id", None)


def ip_identifier(request: Request) -> str:
    return f"ip_{get_client_ip(request)}"


def user_identifier(user: AuthenticatedUser) -> str:
    return f"user_{user.id}"


def user_or_ip_identifier(request: Request) -> str:
    """``user_<id>`` when authenticated, otherwise the client IP."""
    user = get_current_user(request)
    if user is not None:
        return user_identifier(user)
    return get_client_ip(request)


def tenant_identifier(tenant_id: int) -> str:
    return f"tenant_{tenant_id}"


def tenant_user_identifier(tenant_id: int | None, user: AuthenticatedUser) -> str:
    # Unscoped users land in tenant_0, matching an unset tenant id
    return f"tenant_{tenant_id or 0}_user_{user.id}"


def sensitive_identifier(request: Request) -> str:
    user = get_current_user(request)
    if user is not None:
        return f"sensitive_user_{user.id}"
    return ip_identifier(request)


def auth_identifier(request: Request) -> str:
    return f"auth_ip_{get_client_ip(request)}"


def payment_identifier(request: Request) -> str:
    """Payments are limited per tenant and user, falling back to the client IP."""
    tenant_id = get_tenant_id(request)
    if tenant_id is not None:
        user = get_current_user(request)
        if user is not None:
            return f"payment_tenant_{tenant_id}_user_{user.id}"
        return f"payment_tenant_{tenant_id}"
    return f"payment_ip_{get_client_ip(request)}"


def scaled_limit(limit: int, multiplier: float) -> int:
    """Tenant budget: the base limit scaled by the multiplier, never below 1."""
    return max(1, int(limit * multiplier))
