"""Repositories for the exam-authoring tables.

Each repository class extends :class:`~examvault.core.repository.Repository`
(or :class:`~examvault.core.repository.AsyncRepository`) and adds the
queries that are more than a single-table filter: joined graph loads and
the invariant-preserving compound operations.

Architecture::

    ┌────────────────────────────────────────────────────────────────┐
    │  services / API handlers                                      │
    └────────────────────────────┬───────────────────────────────────┘
                                 │ uses
                                 ▼
    ┌────────────────────────────────────────────────────────────────┐
    │  examvault.core.repositories  (this package)                   │
    │                                                               │
    │  roles.py       RoleRepository,                               │
    │                 QuestionBankCategoryRepository                │
    │  users.py       UserRepository        (3-way join)            │
    │  questions.py   QuestionRepository    (2 relations, 1-based)  │
    │  thumbnails.py  MediaThumbnailRepository (+ Async)            │
    │                 set_as_default → promote_default              │
    │  audit_logs.py  AuditLogRepository (+ Async, 0-based)         │
    │                 archive_logs → archive_and_purge              │
    │  _helpers.py    builder_for, collection                       │
    └────────────────────────────────────────────────────────────────┘

Tags:
    examvault, repository, sql, domain, data-access, crud

Doc-Types:
    - API Reference
    - Repository Pattern Guide
"""

from examvault.core.repositories.audit_logs import AsyncAuditLogRepository, AuditLogRepository
from examvault.core.repositories.questions import QuestionRepository
from examvault.core.repositories.roles import QuestionBankCategoryRepository, RoleRepository
from examvault.core.repositories.thumbnails import (
    AsyncMediaThumbnailRepository,
    MediaThumbnailRepository,
)
from examvault.core.repositories.users import UserRepository

__all__ = [
    "AuditLogRepository",
    "AsyncAuditLogRepository",
    "MediaThumbnailRepository",
    "AsyncMediaThumbnailRepository",
    "QuestionRepository",
    "QuestionBankCategoryRepository",
    "RoleRepository",
    "UserRepository",
]
