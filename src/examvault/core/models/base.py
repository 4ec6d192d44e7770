"""Audited entity base.

Every table carries the same four lifecycle columns. The engine stamps
them; callers never need to set them.

Tags:
    models, dataclasses, audit, soft-delete
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(kw_only=True)
class AuditedEntity:
    """Lifecycle columns shared by every entity."""

    created_at: datetime | None = None
    modified_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
