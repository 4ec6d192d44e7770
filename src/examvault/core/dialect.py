"""SQL dialect abstraction for the persistence engine.

Provides a ``Dialect`` protocol and the two backends the engine supports.
Statement builders ask the dialect for every fragment that differs between
stores (identifier quoting, generated-key return, pagination, transaction
start, DDL column types) so one code path emits SQL for both.

Manifesto:
    The same repository must run against SQL Server in production and
    SQLite in development and tests. Without a dialect layer the
    differences (``OFFSET ... FETCH NEXT`` versus ``LIMIT ... OFFSET``,
    ``OUTPUT INSERTED`` versus ``RETURNING``, ``[x]`` versus ``"x"``) leak
    into every repository.

    - **One interface:** Dialect protocol for all store-specific syntax
    - **Zero coupling:** statement builders never import a driver
    - **Chosen once:** the dialect is a deployment setting, not a per-call one

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    StatementBuilder:
    ┌────────────────────────────────────────────────────────────────┐
    │  sql = d.insert(table, columns, returning=pk)                  │
    │  suffix, params = d.paginate(offset, size)                     │
    └────────────────────────────────────────────────────────────────┘
                              │
                              ▼
         ┌──────────────────────────┐   ┌──────────────────────────┐
         │ SQLServerDialect ("A")   │   │ SQLiteDialect ("B")       │
         │ [col]                    │   │ "col"                     │
         │ OUTPUT INSERTED.[pk]     │   │ RETURNING "pk"            │
         │ OFFSET ? ROWS            │   │ LIMIT ? OFFSET ?          │
         │ FETCH NEXT ? ROWS ONLY   │   │                           │
         └──────────────────────────┘   └──────────────────────────┘

Examples:
    >>> from examvault.core.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.paginate(40, 20)
    (' LIMIT ? OFFSET ?', (20, 40))
    >>> get_dialect("sqlserver").paginate(40, 20)
    (' OFFSET ? ROWS FETCH NEXT ? ROWS ONLY', (40, 20))

Guardrails:
    ❌ DON'T: Write ``LIMIT`` or ``TOP`` in repository code
    ✅ DO: Use ``dialect.paginate()``

    ❌ DON'T: Quote identifiers by hand
    ✅ DO: Use ``dialect.quote()`` on names taken from an EntityDescriptor

Tags:
    dialect, sql, abstraction, portability, pagination

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

from examvault.core.errors import ConfigurationError


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a SQL fragment (or a fragment plus the parameter
    values it binds, in placeholder order). Identifiers passed in always
    come from a trusted descriptor; values never appear in the text.
    """

    @property
    def name(self) -> str:
        """Dialect name (``'sqlite'`` or ``'sqlserver'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def quote(self, identifier: str) -> str:
        """Quote a table or column name."""
        ...

    def boolean_true(self) -> str:
        """Literal for boolean ``True`` in a predicate."""
        ...

    def boolean_false(self) -> str:
        """Literal for boolean ``False`` in a predicate."""
        ...

    def insert(self, table: str, columns: list[str], returning: str | None = None) -> str:
        """``INSERT`` statement, optionally returning ``returning`` in the
        same round trip."""
        ...

    def paginate(self, offset: int, size: int) -> tuple[str, tuple[int, int]]:
        """Pagination suffix (appended after ``ORDER BY``) and its params."""
        ...

    def begin_transaction(self) -> str:
        """Statement that opens an explicit transaction."""
        ...

    def column_type(self, python_type: type) -> str:
        """DDL column type for a Python field type."""
        ...

    def identity_type(self) -> str:
        """DDL column type of a store-generated integer key."""
        ...

    def create_table_if_absent(
        self, table: str, column_defs: list[str], primary_key: str
    ) -> str:
        """DDL creating ``table`` unless it already exists."""
        ...

    def table_exists_query(self) -> str:
        """Query returning a row if the table named by the single
        placeholder exists."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class _QmarkDialect:
    """Shared ``?`` placeholder handling; both supported drivers
    (sqlite3/aiosqlite and pyodbc) use the qmark paramstyle."""

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def boolean_true(self) -> str:
        return "1"

    def boolean_false(self) -> str:
        return "0"


class SQLiteDialect(_QmarkDialect):
    """SQLite dialect: ``"x"`` quoting, ``RETURNING``, ``LIMIT ? OFFSET ?``.

    SQLite has no native 128-bit identifier type, so UUID columns are TEXT
    and go through the coercion registry.
    """

    _TYPES: dict[type, str] = {
        bool: "INTEGER",
        int: "INTEGER",
        float: "REAL",
        str: "TEXT",
        bytes: "BLOB",
        Decimal: "TEXT",
        UUID: "TEXT",
        datetime: "TEXT",
        date: "TEXT",
        time: "TEXT",
    }

    @property
    def name(self) -> str:
        return "sqlite"

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def insert(self, table: str, columns: list[str], returning: str | None = None) -> str:
        cols = ", ".join(self.quote(c) for c in columns)
        sql = f"INSERT INTO {self.quote(table)} ({cols}) VALUES ({self.placeholders(len(columns))})"
        if returning:
            sql += f" RETURNING {self.quote(returning)}"
        return sql

    def paginate(self, offset: int, size: int) -> tuple[str, tuple[int, int]]:
        return " LIMIT ? OFFSET ?", (size, offset)

    def begin_transaction(self) -> str:
        return "BEGIN"

    def column_type(self, python_type: type) -> str:
        if isinstance(python_type, type) and issubclass(python_type, Enum):
            return "INTEGER" if issubclass(python_type, int) else "TEXT"
        return self._TYPES.get(python_type, "TEXT")

    def identity_type(self) -> str:
        # A single-column INTEGER primary key aliases the rowid
        return "INTEGER"

    def create_table_if_absent(
        self, table: str, column_defs: list[str], primary_key: str
    ) -> str:
        body = ", ".join(column_defs + [f"PRIMARY KEY ({self.quote(primary_key)})"])
        return f"CREATE TABLE IF NOT EXISTS {self.quote(table)} ({body})"

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?"


class SQLServerDialect(_QmarkDialect):
    """SQL Server dialect: ``[x]`` quoting, ``OUTPUT INSERTED``,
    ``OFFSET ? ROWS FETCH NEXT ? ROWS ONLY``.

    Compatible with ``pyodbc`` (qmark paramstyle). ``OFFSET/FETCH``
    requires an ``ORDER BY``; the statement builder always emits one.
    """

    _TYPES: dict[type, str] = {
        bool: "BIT",
        int: "BIGINT",
        float: "FLOAT",
        str: "NVARCHAR(MAX)",
        bytes: "VARBINARY(MAX)",
        Decimal: "DECIMAL(18, 4)",
        UUID: "UNIQUEIDENTIFIER",
        datetime: "DATETIME2",
        date: "DATE",
        time: "TIME",
    }

    @property
    def name(self) -> str:
        return "sqlserver"

    def quote(self, identifier: str) -> str:
        return "[" + identifier.replace("]", "]]") + "]"

    def insert(self, table: str, columns: list[str], returning: str | None = None) -> str:
        cols = ", ".join(self.quote(c) for c in columns)
        output = f" OUTPUT INSERTED.{self.quote(returning)}" if returning else ""
        return (
            f"INSERT INTO {self.quote(table)} ({cols}){output} "
            f"VALUES ({self.placeholders(len(columns))})"
        )

    def paginate(self, offset: int, size: int) -> tuple[str, tuple[int, int]]:
        return " OFFSET ? ROWS FETCH NEXT ? ROWS ONLY", (offset, size)

    def begin_transaction(self) -> str:
        return "BEGIN TRANSACTION"

    def column_type(self, python_type: type) -> str:
        if isinstance(python_type, type) and issubclass(python_type, Enum):
            return "INT" if issubclass(python_type, int) else "NVARCHAR(100)"
        return self._TYPES.get(python_type, "NVARCHAR(MAX)")

    def identity_type(self) -> str:
        return "BIGINT IDENTITY(1, 1)"

    def create_table_if_absent(
        self, table: str, column_defs: list[str], primary_key: str
    ) -> str:
        body = ", ".join(column_defs + [f"PRIMARY KEY ({self.quote(primary_key)})"])
        # Table name comes from a descriptor, never from caller input.
        return (
            f"IF OBJECT_ID(N'{table}', N'U') IS NULL "
            f"CREATE TABLE {self.quote(table)} ({body})"
        )

    def table_exists_query(self) -> str:
        return "SELECT name FROM sys.tables WHERE name = ?"


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "sqlserver": SQLServerDialect(),
    "mssql": SQLServerDialect(),  # alias
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Args:
        db_type: ``'sqlite'``, ``'sqlserver'`` or its alias ``'mssql'``.

    Raises:
        ConfigurationError: If ``db_type`` is not recognised.
    """
    key = db_type.lower() if isinstance(db_type, str) else db_type.value
    if key not in _DIALECTS:
        raise ConfigurationError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'mssql'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (e.g. a test double)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "SQLServerDialect",
    "get_dialect",
    "register_dialect",
]
