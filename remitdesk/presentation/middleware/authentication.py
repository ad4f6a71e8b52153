"""
Authentication Middleware.

Validates the bearer token and establishes the tenant scope of the request:
``request.state.user`` holds the ``AuthenticatedUser`` and
``request.state.tenant_id`` its tenant, or None for super admins who act
across tenants.
"""

import logging

from fastapi.security.utils import get_authorization_scheme_param
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN
from starlette.types import ASGIApp

from remitdesk.core.exceptions import InvalidTokenException, TokenExpiredException
from remitdesk.infrastructure.security.jwt import JWTService

logger = logging.getLogger(__name__)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        jwt_service: JWTService,
        public_paths: set[str] | None = None,
    ):
        super().__init__(app)
        self.jwt_service = jwt_service
        self.public_paths = public_paths or set()

    def _is_public_path(self, path: str) -> bool:
        return path in self.public_paths

    def _extract_token(self, request: Request) -> str | None:
        authorization = request.headers.get("Authorization")
        if not authorization:
            return None
        scheme, param = get_authorization_scheme_param(authorization)
        if scheme.lower() != "bearer" or not param:
            return None
        return param

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.user = None
        request.state.tenant_id = None

        if self._is_public_path(request.url.path):
            return await call_next(request)

        token = self._extract_token(request)
        if token is None:
            return JSONResponse(
                status_code=HTTP_401_UNAUTHORIZED,
                content={"detail": "Authorization header required"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            user = self.jwt_service.authenticate(token)
        except (InvalidTokenException, TokenExpiredException) as e:
            logger.info(f"Rejected bearer token on {request.url.path}: {e.message}")
            return JSONResponse(
                status_code=HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or expired token"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not user.is_super_admin and user.tenant_id is None:
            logger.warning(f"User {user.id} has no tenant association")
            return JSONResponse(
                status_code=HTTP_403_FORBIDDEN,
                content={"detail": "User is not associated with a tenant"},
            )

        request.state.user = user
        request.state.tenant_id = None if user.is_super_admin else user.tenant_id
        return await call_next(request)
