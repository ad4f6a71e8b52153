"""
Rate limiting policies shared by middleware and route dependencies.
"""

from remitdesk.core.security.rate_limiting.identifiers import (
    auth_identifier,
    get_client_ip,
    get_current_user,
    get_tenant_id,
    ip_identifier,
    payment_identifier,
    scaled_limit,
    sensitive_identifier,
    tenant_identifier,
    tenant_user_identifier,
    user_identifier,
    user_or_ip_identifier,
)
from remitdesk.core.security.rate_limiting.responses import (
    rate_limit_headers,
    rate_limited_response,
    response_from_exception,
)

__all__ = [
    "auth_identifier",
    "get_client_ip",
    "get_current_user",
    "get_tenant_id",
    "ip_identifier",
    "payment_identifier",
    "rate_limit_headers",
    "rate_limited_response",
    "response_from_exception",
    "scaled_limit",
    "sensitive_identifier",
    "tenant_identifier",
    "tenant_user_identifier",
    "user_identifier",
    "user_or_ip_identifier",
]
