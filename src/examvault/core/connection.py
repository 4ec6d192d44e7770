"""Connection providers: the engine's only route to a live database.

Each provider produces one :class:`~examvault.core.protocols.ConnectionHandle`
per logical operation. Handles run in autocommit mode until ``begin()`` is
called, so single statements commit on their own and compound operations
bracket themselves explicitly (see :mod:`examvault.core.transactions`).

Providers
---------
==============================  ===================  ==============
Provider                        Driver               Dialect
==============================  ===================  ==============
``SQLiteConnectionProvider``    ``sqlite3``          ``sqlite``
``AsyncSQLiteConnectionProvider`` ``aiosqlite``       ``sqlite``
``SQLServerConnectionProvider`` ``pyodbc`` (extra)   ``sqlserver``
==============================  ===================  ==============

Usage
-----
::

    provider = SQLiteConnectionProvider("data/examvault.db")
    with provider.connection() as handle:
        handle.execute("SELECT 1")

    provider = build_provider(get_settings())

``pyodbc`` is import-guarded: if it is missing, a clear
:class:`~examvault.core.errors.ConfigurationError` is raised when the first
connection is opened, not at import time.
"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from examvault.core.dialect import Dialect, SQLiteDialect, SQLServerDialect
from examvault.core.errors import ConfigurationError, StoreError, TransientStoreError
from examvault.core.logging import get_logger
from examvault.core.protocols import AsyncConnectionHandle, ConnectionHandle, Cursor
from examvault.core.settings import VaultSettings

logger = get_logger(__name__)


# ── Handles ──────────────────────────────────────────────────────────────


class DbApiHandle:
    """ConnectionHandle over a DB-API connection opened in autocommit mode."""

    def __init__(self, raw: Any, dialect: Dialect):
        self._raw = raw
        self._dialect = dialect
        self._in_transaction = False

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def raw(self) -> Any:
        """The underlying driver connection."""
        return self._raw

    def execute(self, sql: str, params: tuple = ()) -> Cursor:
        cursor = self._raw.cursor()
        cursor.execute(sql, params)
        return cursor

    def begin(self) -> None:
        if self._in_transaction:
            raise StoreError("A transaction is already open on this connection")
        self._raw.cursor().execute(self._dialect.begin_transaction())
        self._in_transaction = True

    def commit(self) -> None:
        if not self._in_transaction:
            return
        self._raw.cursor().execute("COMMIT")
        self._in_transaction = False

    def rollback(self) -> None:
        if not self._in_transaction:
            return
        # Flag first: a failed ROLLBACK still ends our view of the transaction.
        self._in_transaction = False
        self._raw.cursor().execute("ROLLBACK")

    def close(self) -> None:
        try:
            self.rollback()
        finally:
            self._raw.close()


class AsyncDbApiHandle:
    """AsyncConnectionHandle over an aiosqlite connection in autocommit mode."""

    def __init__(self, raw: aiosqlite.Connection, dialect: Dialect):
        self._raw = raw
        self._dialect = dialect
        self._in_transaction = False

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    async def execute(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        return await self._raw.execute(sql, params)

    async def begin(self) -> None:
        if self._in_transaction:
            raise StoreError("A transaction is already open on this connection")
        await self._raw.execute(self._dialect.begin_transaction())
        self._in_transaction = True

    async def commit(self) -> None:
        if not self._in_transaction:
            return
        await self._raw.execute("COMMIT")
        self._in_transaction = False

    async def rollback(self) -> None:
        if not self._in_transaction:
            return
        self._in_transaction = False
        await self._raw.execute("ROLLBACK")

    async def close(self) -> None:
        try:
            await self.rollback()
        finally:
            await self._raw.close()


# ── Provider bases ───────────────────────────────────────────────────────


class BaseConnectionProvider:
    """Scoped acquisition on top of ``open()``."""

    dialect: Dialect
    error_types: tuple[type[BaseException], ...] = ()

    def open(self) -> ConnectionHandle:
        raise NotImplementedError

    @contextmanager
    def connection(self) -> Iterator[ConnectionHandle]:
        """Open a handle and close it on every exit path."""
        handle = self.open()
        try:
            yield handle
        finally:
            handle.close()


class BaseAsyncConnectionProvider:
    """Async scoped acquisition on top of ``open()``."""

    dialect: Dialect
    error_types: tuple[type[BaseException], ...] = ()

    async def open(self) -> AsyncConnectionHandle:
        raise NotImplementedError

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnectionHandle]:
        handle = await self.open()
        try:
            yield handle
        finally:
            await handle.close()


# ── SQLite ───────────────────────────────────────────────────────────────


class SQLiteConnectionProvider(BaseConnectionProvider):
    """
    SQLite provider using the built-in sqlite3 module.

    Every ``open()`` creates a fresh connection, so a ``":memory:"`` path
    would give each operation its own empty database; use a file.
    """

    error_types = (sqlite3.Error,)

    def __init__(self, path: str | Path, *, timeout: float = 5.0):
        self.path = str(path)
        self.timeout = timeout
        self.dialect: Dialect = SQLiteDialect()

    def open(self) -> DbApiHandle:
        try:
            raw = sqlite3.connect(
                self.path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            raw.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise TransientStoreError(
                f"Failed to connect to SQLite: {e}", cause=e
            ).with_context(metadata_path=self.path) from e
        return DbApiHandle(raw, self.dialect)

    def __repr__(self) -> str:
        return f"SQLiteConnectionProvider(path={self.path!r})"


class AsyncSQLiteConnectionProvider(BaseAsyncConnectionProvider):
    """SQLite provider for event-loop code, using aiosqlite."""

    error_types = (sqlite3.Error,)

    def __init__(self, path: str | Path, *, timeout: float = 5.0):
        self.path = str(path)
        self.timeout = timeout
        self.dialect: Dialect = SQLiteDialect()

    async def open(self) -> AsyncDbApiHandle:
        try:
            raw = await aiosqlite.connect(
                self.path, timeout=self.timeout, isolation_level=None
            )
            await raw.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise TransientStoreError(
                f"Failed to connect to SQLite: {e}", cause=e
            ).with_context(metadata_path=self.path) from e
        return AsyncDbApiHandle(raw, self.dialect)

    def __repr__(self) -> str:
        return f"AsyncSQLiteConnectionProvider(path={self.path!r})"


# ── SQL Server ───────────────────────────────────────────────────────────


def _import_pyodbc() -> Any:
    try:
        import pyodbc
    except ImportError:
        raise ConfigurationError(
            "pyodbc is required for SQL Server. "
            "Install with: pip install examvault[mssql]"
        ) from None
    return pyodbc


class SQLServerConnectionProvider(BaseConnectionProvider):
    """
    SQL Server provider using pyodbc.

    Connections are opened with ``autocommit=True``; explicit transactions
    are started with ``BEGIN TRANSACTION`` by the handle.
    """

    def __init__(self, dsn: str, *, timeout: float = 5.0):
        if not dsn:
            raise ConfigurationError("SQL Server DSN is empty (set EXAMVAULT_SQLSERVER_DSN)")
        self.dsn = dsn
        self.timeout = timeout
        self.dialect: Dialect = SQLServerDialect()

    @property
    def error_types(self) -> tuple[type[BaseException], ...]:  # type: ignore[override]
        return (_import_pyodbc().Error,)

    def open(self) -> DbApiHandle:
        pyodbc = _import_pyodbc()
        try:
            raw = pyodbc.connect(self.dsn, autocommit=True, timeout=int(self.timeout))
        except pyodbc.Error as e:
            raise TransientStoreError(f"Failed to connect to SQL Server: {e}", cause=e) from e
        return DbApiHandle(raw, self.dialect)

    def __repr__(self) -> str:
        return "SQLServerConnectionProvider(dsn=***)"


# ── Factory ──────────────────────────────────────────────────────────────


def build_provider(
    settings: VaultSettings, *, asynchronous: bool = False
) -> BaseConnectionProvider | BaseAsyncConnectionProvider:
    """Create the provider selected by the deployment settings.

    Raises:
        ConfigurationError: Async access requested for a dialect without an
            async driver, or SQL Server selected without a DSN.
    """
    if settings.dialect == "sqlite":
        settings.database_path.parent.mkdir(parents=True, exist_ok=True)
        if asynchronous:
            return AsyncSQLiteConnectionProvider(
                settings.database_path, timeout=settings.connect_timeout
            )
        return SQLiteConnectionProvider(settings.database_path, timeout=settings.connect_timeout)

    if asynchronous:
        raise ConfigurationError("No async provider is available for SQL Server")
    return SQLServerConnectionProvider(settings.sqlserver_dsn, timeout=settings.connect_timeout)


__all__ = [
    "DbApiHandle",
    "AsyncDbApiHandle",
    "BaseConnectionProvider",
    "BaseAsyncConnectionProvider",
    "SQLiteConnectionProvider",
    "AsyncSQLiteConnectionProvider",
    "SQLServerConnectionProvider",
    "build_provider",
]
