"""Audit log repositories.

Audit pages are numbered from 0, matching the admin screens that page
through them. Old entries leave the live table through
:meth:`AuditLogRepository.archive_logs`: copied to ``AuditLogsArchive``
and soft-deleted in the same transaction.

Tags:
    examvault, repository, audit, archive, pagination

Doc-Types:
    api-reference
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from examvault.core.models import AuditLog
from examvault.core.repository import AsyncRepository, Repository
from examvault.core.statements import Criteria, OrderBy, PageBase
from examvault.core.transactions import archive_and_purge, async_archive_and_purge

CUTOFF_COLUMN = "timestamp"
DEFAULT_ARCHIVE_SUFFIX = "Archive"


class AuditLogRepository(Repository[AuditLog]):
    """CRUD for ``AuditLogs``; pages are numbered from 0."""

    entity_type = AuditLog
    page_base = PageBase.ZERO

    def __init__(
        self,
        provider: Any,
        *args: Any,
        archive_suffix: str = DEFAULT_ARCHIVE_SUFFIX,
        **kwargs: Any,
    ):
        super().__init__(provider, *args, **kwargs)
        self.archive_suffix = archive_suffix

    @property
    def archive_table(self) -> str:
        return self.descriptor.table + self.archive_suffix

    def archive_logs(self, cutoff: datetime) -> int:
        """Archive and soft-delete every live entry stamped before ``cutoff``.

        Returns:
            Number of entries archived (0 when nothing is old enough).
        """
        return archive_and_purge(
            self.provider,
            self.descriptor,
            cutoff,
            registry=self.registry,
            cutoff_column=CUTOFF_COLUMN,
            archive_suffix=self.archive_suffix,
            now=self.clock(),
        )

    def list_for_user(self, user_id: int, page: int = 0, page_size: int = 50) -> list[AuditLog]:
        return self.get_paged(
            page, page_size, Criteria.eq("user_id", user_id), OrderBy.desc(CUTOFF_COLUMN)
        )


class AsyncAuditLogRepository(AsyncRepository[AuditLog]):
    entity_type = AuditLog
    page_base = PageBase.ZERO

    def __init__(
        self,
        provider: Any,
        *args: Any,
        archive_suffix: str = DEFAULT_ARCHIVE_SUFFIX,
        **kwargs: Any,
    ):
        super().__init__(provider, *args, **kwargs)
        self.archive_suffix = archive_suffix

    async def archive_logs(self, cutoff: datetime) -> int:
        return await async_archive_and_purge(
            self.provider,
            self.descriptor,
            cutoff,
            registry=self.registry,
            cutoff_column=CUTOFF_COLUMN,
            archive_suffix=self.archive_suffix,
            now=self.clock(),
        )

    async def list_for_user(
        self, user_id: int, page: int = 0, page_size: int = 50
    ) -> list[AuditLog]:
        return await self.get_paged(
            page, page_size, Criteria.eq("user_id", user_id), OrderBy.desc(CUTOFF_COLUMN)
        )
