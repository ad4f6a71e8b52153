"""
Authenticated principal placed on the request by the authentication layer.
"""

from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    """Roles recognised by tenant scoping."""

    SUPER_ADMIN = "superadmin"
    TENANT_OWNER = "tenant_owner"
    TENANT_ADMIN = "tenant_admin"
    TENANT_USER = "tenant_user"


@dataclass(frozen=True)
class AuthenticatedUser:
    """User resolved from a validated bearer token."""

    id: int
    role: UserRole = UserRole.TENANT_USER
    tenant_id: int | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN
