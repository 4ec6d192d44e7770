"""User repository.

Tags:
    examvault, repository, users, roles, join

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

from examvault.core.models import Role, User, UserRole
from examvault.core.repositories._helpers import builder_for, collection
from examvault.core.repository import Repository


def _membership(row: tuple[User, UserRole | None, Role | None]) -> UserRole | None:
    user_role, role = row[1], row[2]
    if user_role is not None:
        user_role.role = role
    return user_role


class UserRepository(Repository[User]):
    """CRUD for ``Users`` plus the login lookup that loads role memberships."""

    entity_type = User

    def get_by_email_with_roles(self, email: str) -> User | None:
        """Load a live user by e-mail with ``user_roles[*].role`` populated.

        One statement: ``Users`` LEFT JOIN ``UserRoles`` LEFT JOIN ``Roles``.
        The row is split on ``UserRoleId`` and ``RoleId``; ``UserRoles``
        carries its own ``RoleId`` column, so the split relies on the
        right-to-left search.
        """
        users = self.statements
        links = builder_for(UserRole, self)
        roles = builder_for(Role, self)
        q = users.q
        sql = (
            f"SELECT {users.select_list('u')}, {links.select_list('ur')}, "
            f"{roles.select_list('r')} "
            f"FROM {users.table} u "
            f"LEFT JOIN {links.table} ur ON ur.{q('UserId')} = u.{q('UserId')} "
            f"AND {links.not_deleted('ur')} "
            f"LEFT JOIN {roles.table} r ON r.{q('RoleId')} = ur.{q('RoleId')} "
            f"AND {roles.not_deleted('r')} "
            f"WHERE u.{q('Email')} = ? AND {users.not_deleted('u')} "
            f"ORDER BY ur.{q('UserRoleId')}"
        )
        found: list[Any] = self.query_joined(
            sql,
            (email,),
            (User, UserRole, Role),
            collection("user_roles", 1, "user_role_id", child_of=_membership),
            split_on="UserRoleId,RoleId",
        )
        return found[0] if found else None
