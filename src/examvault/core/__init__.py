"""ExamVault Core -- generic persistence for dataclass entities.

Manifesto:
    Every table in the exam-authoring store follows the same conventions:
    pluralized table names, ``<Type>Id`` keys, four audit columns and
    soft deletion. Hand-written repositories re-implement those
    conventions a little differently each time. ``examvault.core`` derives
    them once from the entity type and applies them to every statement.

    - **Reflective:** table, key and columns come from the dataclass
    - **Dual-dialect:** SQL Server in production, SQLite in development
    - **Explicit state:** the coercion registry and page base are passed in
    - **Fail loudly:** driver errors leave as typed :class:`VaultError`

Architecture::

    Layer 1 -- Types & Errors
        errors.py        VaultError hierarchy + map_store_error
        enums.py         Domain enums (ThumbnailSize, AuditSeverity, ...)
        protocols.py     ConnectionProvider / ConnectionHandle protocols
        timestamps.py    UTC clock

    Layer 2 -- Engine
        schema.py        Entity type -> EntityDescriptor (cached)
        coercion.py      TypeCoercionRegistry (UUID, datetime, Enum, ...)
        dialect.py       SQLite / SQL Server dialects
        statements.py    StatementBuilder, Criteria, PageRequest
        flatten.py       Joined rows -> owners with nested collections
        transactions.py  unit_of_work, promote_default, archive_and_purge
        repository.py    Repository / AsyncRepository facades

    Layer 3 -- Domain
        models/          Dataclass entities for every table
        repositories/    Per-aggregate repositories

    Layer 4 -- Cross-Cutting
        logging.py       structlog configuration
        settings.py      VaultSettings (pydantic-settings)
        connection.py    sqlite3 / aiosqlite / pyodbc providers

Tags:
    examvault, persistence, repository, reflection, dialect

Doc-Types:
    package-overview, architecture-map, module-index
"""

from examvault.core.coercion import TypeCoercionRegistry, default_registry
from examvault.core.connection import (
    AsyncSQLiteConnectionProvider,
    SQLiteConnectionProvider,
    SQLServerConnectionProvider,
    build_provider,
)
from examvault.core.dialect import Dialect, SQLiteDialect, SQLServerDialect, get_dialect
from examvault.core.errors import (
    CoercionError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    QueryError,
    StoreError,
    TransientStoreError,
    ValidationError,
    VaultError,
)
from examvault.core.flatten import JoinMapper, Relation, flatten, split_row
from examvault.core.repository import AsyncRepository, Repository
from examvault.core.schema import EntityDescriptor, describe, register_entities
from examvault.core.statements import Criteria, OrderBy, PageBase, PageRequest, StatementBuilder
from examvault.core.transactions import (
    archive_and_purge,
    async_archive_and_purge,
    async_promote_default,
    promote_default,
    unit_of_work,
)

__all__ = [
    "TypeCoercionRegistry",
    "default_registry",
    "AsyncSQLiteConnectionProvider",
    "SQLiteConnectionProvider",
    "SQLServerConnectionProvider",
    "build_provider",
    "Dialect",
    "SQLiteDialect",
    "SQLServerDialect",
    "get_dialect",
    "CoercionError",
    "ConfigurationError",
    "ConflictError",
    "NotFoundError",
    "QueryError",
    "StoreError",
    "TransientStoreError",
    "ValidationError",
    "VaultError",
    "JoinMapper",
    "Relation",
    "flatten",
    "split_row",
    "AsyncRepository",
    "Repository",
    "EntityDescriptor",
    "describe",
    "register_entities",
    "Criteria",
    "OrderBy",
    "PageBase",
    "PageRequest",
    "StatementBuilder",
    "archive_and_purge",
    "async_archive_and_purge",
    "async_promote_default",
    "promote_default",
    "unit_of_work",
]
