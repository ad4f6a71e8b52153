"""
Rate limiter dependencies for API routes.

Each policy derives one or more (identifier, limit, window) checks from the
request and runs them against the process-wide limiter held on
``app.state.rate_limiter``. Policies with several checks are conjunctive:
every check must pass, and they run in order so a rejection stops the
remaining checks from consuming budget.

The transaction routes use ``tenant_rate_limit``, ``sensitive_rate_limit`` and
``payment_rate_limit``. ``ip_rate_limit``, ``user_rate_limit`` and
``auth_rate_limit`` are not attached to any route served by this API: they are
exported for routers that include this package, and ``auth_rate_limit`` is
the only policy that records a security event when it rejects a request.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Request

from remitdesk.core.config.settings import Settings, get_settings
from remitdesk.core.exceptions import RateLimitExceededError
from remitdesk.core.interfaces.services.rate_limiting import IRateLimiter, RateLimitConfig, RateLimitScope
from remitdesk.core.security.rate_limiting import (
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
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitCheck:
    """A single limiter call derived from a request."""

    identifier: str
    config: RateLimitConfig
    error: str
    # Formatted with the ISO reset time as ``{reset}``
    message_template: str | None = None

    def exceeded(self, reset_at: float) -> RateLimitExceededError:
        message = None
        if self.message_template:
            reset_iso = datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()
            message = self.message_template.format(reset=reset_iso)
        return RateLimitExceededError(
            self.error,
            limit=self.config.requests,
            reset_at=reset_at,
            message=message,
        )


RateLimitPolicy = Callable[[Request, Settings], list[RateLimitCheck]]
BreachHandler = Callable[[Request, RateLimitCheck], None]


def _get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def _get_limiter(request: Request) -> IRateLimiter | None:
    return getattr(request.app.state, "rate_limiter", None)


class RateLimitDependency:
    """
    FastAPI dependency applying a rate limit policy.

    Raises ``RateLimitExceededError`` (rendered as 429) when a check fails.
    Limiter failures are logged and the request is allowed.
    """

    def __init__(self, policy: RateLimitPolicy, on_breach: BreachHandler | None = None):
        self.policy = policy
        self.on_breach = on_breach

    async def __call__(self, request: Request) -> None:
        settings = _get_settings(request)
        if not settings.RATE_LIMITING_ENABLED:
            return

        limiter = _get_limiter(request)
        if limiter is None:
            logger.warning("Rate limiter not configured on app.state; skipping rate limit check")
            return

        for check in self.policy(request, settings):
            try:
                allowed, reset_at = limiter.check_rate_limit(
                    check.identifier, check.config.requests, check.config.window_seconds
                )
            except Exception as e:
                logger.error(f"Rate limiting error for {check.identifier}: {e}", exc_info=True)
                continue

            if not allowed:
                logger.warning(
                    f"{check.error}: {check.identifier} "
                    f"({check.config.requests}/{check.config.window_seconds}s) at {request.url.path}"
                )
                if self.on_breach is not None:
                    self.on_breach(request, check)
                raise check.exceeded(reset_at)


def _general(settings: Settings, scope: RateLimitScope) -> RateLimitConfig:
    return RateLimitConfig(
        requests=settings.RATE_LIMIT_GENERAL_LIMIT,
        window_seconds=settings.RATE_LIMIT_GENERAL_WINDOW_SECONDS,
        scope=scope,
    )


def ip_policy(request: Request, settings: Settings) -> list[RateLimitCheck]:
    return [
        RateLimitCheck(
            identifier=ip_identifier(request),
            config=_general(settings, RateLimitScope.IP),
            error="Too many requests from this IP",
            message_template="IP rate limit exceeded. Try again after {reset}",
        )
    ]


def user_policy(request: Request, settings: Settings) -> list[RateLimitCheck]:
    user = get_current_user(request)
    if user is None:
        return ip_policy(request, settings)
    return [
        RateLimitCheck(
            identifier=user_identifier(user),
            config=_general(settings, RateLimitScope.USER),
            error="User rate limit exceeded",
        )
    ]


def tenant_policy(request: Request, settings: Settings) -> list[RateLimitCheck]:
    """Tenant budget scaled by the multiplier, then the unscaled per-user budget."""
    checks = []
    tenant_id = get_tenant_id(request)
    if tenant_id is not None:
        checks.append(
            RateLimitCheck(
                identifier=tenant_identifier(tenant_id),
                config=RateLimitConfig(
                    requests=scaled_limit(settings.RATE_LIMIT_GENERAL_LIMIT, settings.RATE_LIMIT_TENANT_MULTIPLIER),
                    window_seconds=settings.RATE_LIMIT_GENERAL_WINDOW_SECONDS,
                    scope=RateLimitScope.TENANT,
                ),
                error="Tenant rate limit exceeded",
            )
        )

    user = get_current_user(request)
    if user is not None:
        checks.append(
            RateLimitCheck(
                identifier=tenant_user_identifier(tenant_id, user),
                config=_general(settings, RateLimitScope.USER),
                error="User rate limit exceeded",
            )
        )
    return checks


def sensitive_policy(request: Request, settings: Settings) -> list[RateLimitCheck]:
    return [
        RateLimitCheck(
            identifier=sensitive_identifier(request),
            config=RateLimitConfig(
                requests=settings.RATE_LIMIT_SENSITIVE_LIMIT,
                window_seconds=settings.RATE_LIMIT_SENSITIVE_WINDOW_SECONDS,
                scope=RateLimitScope.SENSITIVE,
            ),
            error="Too many requests to sensitive endpoint",
        )
    ]


def auth_policy(request: Request, settings: Settings) -> list[RateLimitCheck]:
    return [
        RateLimitCheck(
            identifier=auth_identifier(request),
            config=RateLimitConfig(
                requests=settings.RATE_LIMIT_AUTH_LIMIT,
                window_seconds=settings.RATE_LIMIT_AUTH_WINDOW_SECONDS,
                scope=RateLimitScope.AUTH,
            ),
            error="Too many authentication attempts",
            message_template="Please wait before trying again. Reset at {reset}",
        )
    ]


def payment_policy(request: Request, settings: Settings) -> list[RateLimitCheck]:
    return [
        RateLimitCheck(
            identifier=payment_identifier(request),
            config=RateLimitConfig(
                requests=settings.RATE_LIMIT_PAYMENT_LIMIT,
                window_seconds=settings.RATE_LIMIT_PAYMENT_WINDOW_SECONDS,
                scope=RateLimitScope.PAYMENT,
            ),
            error="Too many payment requests",
        )
    ]


def log_auth_breach(request: Request, check: RateLimitCheck) -> None:
    """Schedule a security event for an authentication flood; never blocks."""
    service = getattr(request.app.state, "security_event_service", None)
    if service is None:
        return
    try:
        service.log_event("rate_limit_exceeded", get_client_ip(request), request.url.path)
    except Exception as e:
        logger.warning(f"Could not schedule security event: {e}")


ip_rate_limit = RateLimitDependency(ip_policy)
user_rate_limit = RateLimitDependency(user_policy)
tenant_rate_limit = RateLimitDependency(tenant_policy)
sensitive_rate_limit = RateLimitDependency(sensitive_policy)
auth_rate_limit = RateLimitDependency(auth_policy, on_breach=log_auth_breach)
payment_rate_limit = RateLimitDependency(payment_policy)
