"""User, role and membership models (``Users``, ``Roles``, ``UserRoles``).

Tags:
    models, dataclasses, users, roles

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from examvault.core.models.base import AuditedEntity


@dataclass(kw_only=True)
class Role(AuditedEntity):
    """A named permission set (``Roles``)."""

    role_id: int | None = None
    code: str
    name: str
    description: str | None = None
    is_system_role: bool = False


@dataclass(kw_only=True)
class UserRole(AuditedEntity):
    """Membership of one user in one role (``UserRoles``)."""

    user_role_id: int | None = None
    user_id: int
    role_id: int
    assigned_at: datetime | None = None
    assigned_by: int | None = None

    role: Role | None = None


@dataclass(kw_only=True)
class User(AuditedEntity):
    """Platform account (``Users``)."""

    user_id: int | None = None
    username: str
    email: str
    first_name: str = ""
    last_name: str = ""
    password_hash: str = ""
    phone_number: str | None = None
    preferred_language: str | None = None
    is_active: bool = True
    email_verified: bool = False
    last_login_at: datetime | None = None

    user_roles: list[UserRole] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
