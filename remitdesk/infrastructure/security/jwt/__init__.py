from remitdesk.infrastructure.security.jwt.jwt_service import JWTService

__all__ = ["JWTService"]
