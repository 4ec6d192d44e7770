"""Role and question-bank category repositories.

Tags:
    examvault, repository, roles, categories

Doc-Types:
    api-reference
"""

from __future__ import annotations

from examvault.core.models import QuestionBankCategory, Role
from examvault.core.repository import Repository
from examvault.core.statements import Criteria, OrderBy


class RoleRepository(Repository[Role]):
    """CRUD for the ``Roles`` table."""

    entity_type = Role

    def get_by_code(self, code: str) -> Role | None:
        found = self.get_all(Criteria.eq("code", code))
        return found[0] if found else None


class QuestionBankCategoryRepository(Repository[QuestionBankCategory]):
    """CRUD for the ``QuestionBankCategories`` tree (key column ``CategoryId``)."""

    entity_type = QuestionBankCategory

    def list_children(self, parent_id: int | None) -> list[QuestionBankCategory]:
        """Direct children of ``parent_id`` (roots when ``None``), in display order."""
        where = (
            Criteria.is_null("parent_id")
            if parent_id is None
            else Criteria.eq("parent_id", parent_id)
        )
        return self.get_all(where, [OrderBy.asc("sort_order"), OrderBy.asc("name")])
