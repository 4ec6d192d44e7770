"""
Canonical protocol definitions for examvault.

This module is the single source of truth for the collaborator contracts
the persistence engine consumes: a connection provider that produces live
database handles, and the handles themselves (sync and async). Concrete
implementations live in :mod:`examvault.core.connection`; tests may supply
any object of the same shape.

Manifesto:
    The engine depends on shape, not on a driver. A provider produces a
    handle; a handle runs statements and brackets them in a transaction
    when asked. Everything else (pooling, DSNs, timeouts) stays behind the
    provider.

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── Cursor                  DB-API cursor subset the engine reads
        ├── ConnectionHandle        sync handle: execute + begin/commit/rollback
        ├── ConnectionProvider      open() -> ConnectionHandle
        ├── AsyncCursor             awaitable fetches
        ├── AsyncConnectionHandle   async handle
        └── AsyncConnectionProvider async open()

        ┌────────────────────────────────────────────────────────┐
        │ ConnectionHandle                                        │
        │   dialect                → SQL dialect of the store     │
        │   execute(sql, params)   → Cursor                       │
        │   begin()                → explicit transaction start   │
        │   commit() / rollback()  → end the transaction          │
        │   in_transaction         → True between begin and end   │
        │   close()                → release the connection       │
        └────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Keep a handle open across caller-supplied logic
    ✅ DO: Acquire per operation via ``provider.connection()``

    ❌ DON'T: Call driver-specific methods from repository code
    ✅ DO: Go through ConnectionHandle only

Tags:
    protocol, connection, provider, async, database, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager, AbstractContextManager
from typing import Any, Protocol, runtime_checkable

from examvault.core.dialect import Dialect

# ---------------------------------------------------------------------------
# Synchronous contracts
# ---------------------------------------------------------------------------


@runtime_checkable
class Cursor(Protocol):
    """DB-API 2.0 cursor subset used by the engine."""

    description: Any
    rowcount: int

    def fetchone(self) -> Any: ...

    def fetchall(self) -> list: ...


@runtime_checkable
class ConnectionHandle(Protocol):
    """
    A live database connection as seen by the engine.

    Handles start in autocommit mode: each statement is its own unit
    unless ``begin()`` has been called. ``commit()``/``rollback()`` end an
    explicit transaction and return the handle to autocommit.
    """

    @property
    def dialect(self) -> Dialect: ...

    @property
    def in_transaction(self) -> bool: ...

    def execute(self, sql: str, params: tuple = ()) -> Cursor:
        """Execute one statement with bound parameters."""
        ...

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class ConnectionProvider(Protocol):
    """Produces live handles. One handle per logical operation."""

    @property
    def dialect(self) -> Dialect: ...

    @property
    def error_types(self) -> tuple[type[BaseException], ...]:
        """Driver exception classes the engine should translate."""
        ...

    def open(self) -> ConnectionHandle: ...

    def connection(self) -> AbstractContextManager[ConnectionHandle]:
        """Scoped acquisition: the handle is closed on every exit path."""
        ...


# ---------------------------------------------------------------------------
# Asynchronous contracts
# ---------------------------------------------------------------------------


@runtime_checkable
class AsyncCursor(Protocol):
    """Async cursor subset (aiosqlite shape)."""

    description: Any
    rowcount: int

    async def fetchone(self) -> Any: ...

    async def fetchall(self) -> list: ...


@runtime_checkable
class AsyncConnectionHandle(Protocol):
    """Async counterpart of :class:`ConnectionHandle`."""

    @property
    def dialect(self) -> Dialect: ...

    @property
    def in_transaction(self) -> bool: ...

    async def execute(self, sql: str, params: tuple = ()) -> AsyncCursor: ...

    async def begin(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class AsyncConnectionProvider(Protocol):
    """Async counterpart of :class:`ConnectionProvider`."""

    @property
    def dialect(self) -> Dialect: ...

    @property
    def error_types(self) -> tuple[type[BaseException], ...]: ...

    async def open(self) -> AsyncConnectionHandle: ...

    def connection(self) -> AbstractAsyncContextManager[AsyncConnectionHandle]: ...


__all__ = [
    "Cursor",
    "ConnectionHandle",
    "ConnectionProvider",
    "AsyncCursor",
    "AsyncConnectionHandle",
    "AsyncConnectionProvider",
]
