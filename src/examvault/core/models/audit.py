"""Audit trail model (``AuditLogs``).

Old entries are moved to ``AuditLogsArchive`` by
:meth:`~examvault.core.repositories.AuditLogRepository.archive_logs`.

Tags:
    models, dataclasses, audit, archive
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from examvault.core.enums import AuditCategory, AuditSeverity
from examvault.core.models.base import AuditedEntity
from examvault.core.timestamps import utc_now


@dataclass(kw_only=True)
class AuditLog(AuditedEntity):
    """One recorded action."""

    audit_log_id: int | None = None
    user_id: int | None = None
    user_identifier: str = ""
    action: str
    entity_type: str
    entity_id: str | None = None
    details: str | None = None
    old_values: str | None = None  # JSON
    new_values: str | None = None  # JSON
    ip_address: str | None = None
    user_agent: str | None = None
    session_id: str | None = None
    severity: AuditSeverity = AuditSeverity.MEDIUM
    category: AuditCategory = AuditCategory.SYSTEM
    timestamp: datetime = field(default_factory=utc_now)
    is_system_action: bool = False
