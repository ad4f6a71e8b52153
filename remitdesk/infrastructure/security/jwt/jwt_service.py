"""
JWT validation service.

Tokens are issued by the identity service; this module only validates them
and turns their claims into an ``AuthenticatedUser``. ``create_access_token``
exists for local tooling and tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from remitdesk.core.config.settings import Settings
from remitdesk.core.exceptions import InvalidTokenException, TokenExpiredException
from remitdesk.domain.entities.auth import AuthenticatedUser, UserRole

logger = logging.getLogger(__name__)


class JWTService:
    """Decode bearer tokens with python-jose."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        issuer: str | None = None,
        audience: str | None = None,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience

    @classmethod
    def from_settings(cls, settings: Settings) -> "JWTService":
        return cls(
            secret_key=settings.JWT_SECRET_KEY.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
        )

    def create_access_token(
        self,
        user_id: int,
        *,
        role: UserRole | str = UserRole.TENANT_USER,
        tenant_id: int | None = None,
        expires_in_minutes: int = 30,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "role": UserRole(role).value,
            "tenantId": tenant_id,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=expires_in_minutes)).timestamp()),
        }
        if self.issuer:
            payload["iss"] = self.issuer
        if self.audience:
            payload["aud"] = self.audience
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> dict[str, Any]:
        options = {"verify_aud": bool(self.audience), "verify_iss": bool(self.issuer)}
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience or None,
                issuer=self.issuer or None,
                options=options,
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredException() from exc
        except JWTError as exc:
            raise InvalidTokenException(detail=str(exc)) from exc

    def authenticate(self, token: str) -> AuthenticatedUser:
        """
        Validate ``token`` and build the authenticated principal.

        Raises:
            TokenExpiredException: Token is past its expiry
            InvalidTokenException: Signature, claims or subject are invalid
        """
        payload = self.decode_token(token)

        subject = payload.get("sub", payload.get("userId"))
        try:
            user_id = int(subject)
        except (TypeError, ValueError) as exc:
            raise InvalidTokenException("Invalid subject in token") from exc

        try:
            role = UserRole(payload.get("role") or UserRole.TENANT_USER.value)
        except ValueError as exc:
            raise InvalidTokenException("Unknown role in token") from exc

        tenant_id = payload.get("tenantId")
        if tenant_id is not None:
            try:
                tenant_id = int(tenant_id)
            except (TypeError, ValueError) as exc:
                raise InvalidTokenException("Invalid tenant in token") from exc

        return AuthenticatedUser(id=user_id, role=role, tenant_id=tenant_id)
