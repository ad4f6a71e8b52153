from remitdesk.presentation.api.dependencies.auth import require_tenant, require_user
from remitdesk.presentation.api.dependencies.rate_limiter import (
    RateLimitCheck,
    RateLimitDependency,
    auth_rate_limit,
    ip_rate_limit,
    payment_rate_limit,
    sensitive_rate_limit,
    tenant_rate_limit,
    user_rate_limit,
)

__all__ = [
    "RateLimitCheck",
    "RateLimitDependency",
    "auth_rate_limit",
    "ip_rate_limit",
    "payment_rate_limit",
    "require_tenant",
    "require_user",
    "sensitive_rate_limit",
    "tenant_rate_limit",
    "user_rate_limit",
]
