"""Generic repository facade over the persistence engine.

Provides :class:`Repository` (sync) and :class:`AsyncRepository` (async):
entity-generic CRUD, paging, existence checks and raw query passthrough,
with the soft-delete/audit convention applied uniformly.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                      Repository[E]                                 │
    │                                                                    │
    │   provider: ConnectionProvider   ← one handle per operation        │
    │   registry: TypeCoercionRegistry ← passed in, never global         │
    │   descriptor: EntityDescriptor   ← describe(entity_type)           │
    │   statements: StatementBuilder   ← descriptor + provider.dialect   │
    │                                                                    │
    │   get_by_id(key)            → E         (NotFoundError)            │
    │   get_all(where, order_by)  → list[E]                              │
    │   get_paged(n, size, ...)   → list[E]   (page base explicit)       │
    │   add(entity)               → E         (new instance, key set)    │
    │   update(entity)            → E         (re-read; NotFoundError)   │
    │   soft_delete / hard_delete → None      (NotFoundError)            │
    │   exists / count            → bool / int                           │
    │   raw_query / raw_rows / raw_execute                               │
    │   query_joined(sql, params, types, *relations)                     │
    │                                                                    │
    │   _session(operation)  ← the single error-mapping boundary         │
    └────────────────────────────────────────────────────────────────────┘

Usage:
    >>> class RoleRepository(Repository[Role]):
    ...     entity_type = Role
    ...
    ...     def get_by_code(self, code: str) -> Role | None:
    ...         found = self.get_all(Criteria.eq("code", code))
    ...         return found[0] if found else None

Tags:
    repository, database, crud, soft-delete, pagination, async
"""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncIterator, Callable, Iterator, Sequence
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from examvault.core.coercion import TypeCoercionRegistry, default_registry
from examvault.core.errors import (
    ConfigurationError,
    NotFoundError,
    ValidationError,
    VaultError,
    map_store_error,
)
from examvault.core.flatten import JoinMapper, Relation, flatten
from examvault.core.logging import LogContext, get_logger
from examvault.core.protocols import AsyncConnectionProvider, ConnectionProvider
from examvault.core.schema import (
    CREATED_AT,
    DELETED_AT,
    IS_DELETED,
    MODIFIED_AT,
    EntityDescriptor,
    describe,
)
from examvault.core.settings import get_settings
from examvault.core.statements import (
    Ordering,
    PageBase,
    PageRequest,
    Statement,
    StatementBuilder,
    Where,
)
from examvault.core.timestamps import utc_now

logger = get_logger(__name__)

E = TypeVar("E")


class _TrackedHandle:
    """Remembers the last statement so the error boundary can report it."""

    def __init__(self, handle: Any):
        self.handle = handle
        self.sql: str | None = None

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self.sql = sql
        return self.handle.execute(sql, params)


class _RepositoryCore(Generic[E]):
    """State and pure helpers shared by the sync and async facades."""

    entity_type: type | None = None
    # None defers to the deployment-wide EXAMVAULT_PAGE_BASE
    page_base: PageBase | None = None

    def __init__(
        self,
        provider: Any,
        registry: TypeCoercionRegistry | None = None,
        *,
        entity_type: type[E] | None = None,
        page_base: PageBase | int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        resolved = entity_type or type(self).entity_type
        if resolved is None:
            raise ConfigurationError(f"{type(self).__name__} does not declare an entity_type")
        self.entity_type = resolved
        self.descriptor: EntityDescriptor = describe(resolved)
        self.provider = provider
        self.registry = registry or default_registry()
        if page_base is None:
            page_base = type(self).page_base
        if page_base is None:
            page_base = get_settings().page_base
        self.page_base = PageBase(page_base)
        self.clock = clock
        self.statements = StatementBuilder(self.descriptor, provider.dialect, self.registry)

    # -- helpers ----------------------------------------------------------

    @property
    def name(self) -> str:
        return self.descriptor.name

    def page(self, number: int, size: int, base: PageBase | int | None = None) -> PageRequest:
        """Build a :class:`PageRequest` in this repository's page base unless overridden."""
        return PageRequest(number, size, PageBase(base) if base is not None else self.page_base)

    def key_of(self, entity: Any) -> Any:
        return getattr(entity, self.descriptor.key_attribute)

    def _attr(self, column: str) -> str:
        return self.descriptor.column(column).attribute

    def _prepare_insert(self, entity: E) -> E:
        now = self.clock()
        changes: dict[str, Any] = {
            self._attr(CREATED_AT): now,
            self._attr(MODIFIED_AT): now,
            self._attr(IS_DELETED): False,
            self._attr(DELETED_AT): None,
        }
        d = self.descriptor
        if d.key_generated:
            changes[d.key_attribute] = None
        elif self.key_of(entity) is None:
            changes[d.key_attribute] = uuid4() if d.key_type is UUID else str(uuid4())
        return dataclasses.replace(entity, **changes)

    def _with_key(self, entity: E, raw_key: Any) -> E:
        key = self.registry.from_storage(self.descriptor.key_type, raw_key)
        return dataclasses.replace(entity, **{self.descriptor.key_attribute: key})

    def _require_key(self, entity: E, operation: str) -> Any:
        key = self.key_of(entity)
        if key is None:
            raise ValidationError(
                f"Cannot {operation} a {self.name} without a primary key",
                field=self.descriptor.key_attribute,
            ).with_context(entity=self.name, operation=operation)
        return key

    def _hydrate_all(self, description: Any, rows: Sequence[Any]) -> list[E]:
        columns = [col[0] for col in description]
        return [
            self.registry.hydrate(self.descriptor, dict(zip(columns, row, strict=True)))
            for row in rows
        ]

    def _not_found(self, key: Any, operation: str) -> NotFoundError:
        return NotFoundError(f"{self.name} {key} not found").with_context(
            entity=self.name, operation=operation, entity_id=key, table=self.descriptor.table
        )

    def _tag(self, error: VaultError, operation: str, entity_id: Any) -> None:
        error.with_context(
            entity=self.name, operation=operation, entity_id=entity_id, table=self.descriptor.table
        )

    def _translate(
        self, exc: BaseException, operation: str, entity_id: Any, tracked: _TrackedHandle | None
    ) -> VaultError:
        error = map_store_error(
            exc,
            entity=self.name,
            operation=operation,
            entity_id=entity_id,
            table=self.descriptor.table,
            sql=tracked.sql if tracked is not None else None,
        )
        logger.warning("store_operation_failed", **error.to_dict())
        return error

    def _joined(
        self,
        mapped: list[tuple],
        relations: Sequence[Relation],
    ) -> list[E]:
        key_attr = self.descriptor.key_attribute
        return flatten(mapped, lambda row: getattr(row[0], key_attr), *relations)


class Repository(_RepositoryCore[E]):
    """Synchronous facade. Subclass per entity and set ``entity_type``."""

    provider: ConnectionProvider

    @contextmanager
    def _session(self, operation: str, entity_id: Any = None) -> Iterator[_TrackedHandle]:
        """One connection for one operation; every failure leaves as a tagged VaultError."""
        tracked: _TrackedHandle | None = None
        with LogContext(entity=self.name, operation=operation):
            try:
                with self.provider.connection() as handle:
                    tracked = _TrackedHandle(handle)
                    yield tracked
            except self.provider.error_types as e:
                raise self._translate(e, operation, entity_id, tracked) from e
            except VaultError as e:
                self._tag(e, operation, entity_id)
                raise

    def _fetch(self, session: _TrackedHandle, statement: Statement) -> list[E]:
        cursor = session.execute(*statement)
        return self._hydrate_all(cursor.description, cursor.fetchall())

    # -- reads ------------------------------------------------------------

    def get_by_id(self, key: Any) -> E:
        with self._session("get_by_id", key) as s:
            found = self._fetch(s, self.statements.select_by_id(key))
        if not found:
            raise self._not_found(key, "get_by_id")
        return found[0]

    def get_all(self, where: Where = None, order_by: Ordering = None) -> list[E]:
        with self._session("get_all") as s:
            return self._fetch(s, self.statements.select_all(where, order_by))

    def get_paged(
        self,
        number: int,
        size: int,
        where: Where = None,
        order_by: Ordering = None,
        *,
        base: PageBase | int | None = None,
    ) -> list[E]:
        page = self.page(number, size, base)
        with self._session("get_paged") as s:
            return self._fetch(s, self.statements.select_paged(page, where, order_by))

    def exists(self, key: Any) -> bool:
        with self._session("exists", key) as s:
            return s.execute(*self.statements.exists(key)).fetchone() is not None

    def count(self, where: Where = None) -> int:
        with self._session("count") as s:
            return int(s.execute(*self.statements.count(where)).fetchone()[0])

    # -- writes -----------------------------------------------------------

    def add(self, entity: E) -> E:
        """Insert ``entity``; return a new instance carrying stamps and key."""
        row = self._prepare_insert(entity)
        with self._session("add") as s:
            cursor = s.execute(*self.statements.insert(row))
            if self.descriptor.key_generated:
                row = self._with_key(row, cursor.fetchall()[0][0])
        logger.debug("entity_added", entity=self.name, entity_id=str(self.key_of(row)))
        return row

    def update(self, entity: E) -> E:
        """Write every mutable column; return the stored row.

        Raises:
            NotFoundError: No live row has this key.
        """
        key = self._require_key(entity, "update")
        with self._session("update", key) as s:
            if s.execute(*self.statements.update(entity, self.clock())).rowcount == 0:
                raise self._not_found(key, "update")
            stored = self._fetch(s, self.statements.select_by_id(key))
        if not stored:
            raise self._not_found(key, "update")
        logger.debug("entity_updated", entity=self.name, entity_id=str(key))
        return stored[0]

    def soft_delete(self, key: Any) -> None:
        with self._session("soft_delete", key) as s:
            if s.execute(*self.statements.soft_delete(key, self.clock())).rowcount == 0:
                raise self._not_found(key, "soft_delete")
        logger.debug("entity_soft_deleted", entity=self.name, entity_id=str(key))

    def hard_delete(self, key: Any) -> None:
        with self._session("hard_delete", key) as s:
            if s.execute(*self.statements.hard_delete(key)).rowcount == 0:
                raise self._not_found(key, "hard_delete")
        logger.info("entity_hard_deleted", entity=self.name, entity_id=str(key))

    # -- passthrough ------------------------------------------------------

    def raw_query(self, sql: str, params: tuple = ()) -> list[E]:
        """Run trusted SQL and hydrate rows as this repository's entity."""
        with self._session("raw_query") as s:
            cursor = s.execute(sql, params)
            return self._hydrate_all(cursor.description, cursor.fetchall())

    def raw_rows(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self._session("raw_rows") as s:
            cursor = s.execute(sql, params)
            columns = [col[0] for col in cursor.description]
            return [dict(zip(columns, row, strict=True)) for row in cursor.fetchall()]

    def raw_execute(self, sql: str, params: tuple = ()) -> int:
        with self._session("raw_execute") as s:
            return s.execute(sql, params).rowcount

    def query_joined(
        self,
        sql: str,
        params: tuple,
        types: Sequence[type],
        *relations: Relation,
        split_on: str | Sequence[str] | None = None,
    ) -> list[E]:
        """Run a join, split each row per type, hydrate and flatten.

        ``types[0]`` must be this repository's entity; relations receive
        rows as tuples of hydrated entities (``None`` for outer-join misses).
        """
        mapper = JoinMapper(types, self.registry, split_on)
        with self._session("query_joined") as s:
            cursor = s.execute(sql, params)
            columns = [col[0] for col in cursor.description]
            mapped = mapper.map(columns, cursor.fetchall())
        return self._joined(mapped, relations)


class AsyncRepository(_RepositoryCore[E]):
    """Async facade for services running on an event loop."""

    provider: AsyncConnectionProvider

    @asynccontextmanager
    async def _session(
        self, operation: str, entity_id: Any = None
    ) -> AsyncIterator[_TrackedHandle]:
        tracked: _TrackedHandle | None = None
        async with LogContext(entity=self.name, operation=operation):
            try:
                async with self.provider.connection() as handle:
                    tracked = _TrackedHandle(handle)
                    yield tracked
            except self.provider.error_types as e:
                raise self._translate(e, operation, entity_id, tracked) from e
            except VaultError as e:
                self._tag(e, operation, entity_id)
                raise

    async def _fetch(self, session: _TrackedHandle, statement: Statement) -> list[E]:
        cursor = await session.execute(*statement)
        return self._hydrate_all(cursor.description, await cursor.fetchall())

    async def get_by_id(self, key: Any) -> E:
        async with self._session("get_by_id", key) as s:
            found = await self._fetch(s, self.statements.select_by_id(key))
        if not found:
            raise self._not_found(key, "get_by_id")
        return found[0]

    async def get_all(self, where: Where = None, order_by: Ordering = None) -> list[E]:
        async with self._session("get_all") as s:
            return await self._fetch(s, self.statements.select_all(where, order_by))

    async def get_paged(
        self,
        number: int,
        size: int,
        where: Where = None,
        order_by: Ordering = None,
        *,
        base: PageBase | int | None = None,
    ) -> list[E]:
        page = self.page(number, size, base)
        async with self._session("get_paged") as s:
            return await self._fetch(s, self.statements.select_paged(page, where, order_by))

    async def exists(self, key: Any) -> bool:
        async with self._session("exists", key) as s:
            cursor = await s.execute(*self.statements.exists(key))
            return await cursor.fetchone() is not None

    async def count(self, where: Where = None) -> int:
        async with self._session("count") as s:
            cursor = await s.execute(*self.statements.count(where))
            return int((await cursor.fetchone())[0])

    async def add(self, entity: E) -> E:
        row = self._prepare_insert(entity)
        async with self._session("add") as s:
            cursor = await s.execute(*self.statements.insert(row))
            if self.descriptor.key_generated:
                row = self._with_key(row, (await cursor.fetchall())[0][0])
        logger.debug("entity_added", entity=self.name, entity_id=str(self.key_of(row)))
        return row

    async def update(self, entity: E) -> E:
        key = self._require_key(entity, "update")
        async with self._session("update", key) as s:
            cursor = await s.execute(*self.statements.update(entity, self.clock()))
            if cursor.rowcount == 0:
                raise self._not_found(key, "update")
            stored = await self._fetch(s, self.statements.select_by_id(key))
        if not stored:
            raise self._not_found(key, "update")
        logger.debug("entity_updated", entity=self.name, entity_id=str(key))
        return stored[0]

    async def soft_delete(self, key: Any) -> None:
        async with self._session("soft_delete", key) as s:
            cursor = await s.execute(*self.statements.soft_delete(key, self.clock()))
            if cursor.rowcount == 0:
                raise self._not_found(key, "soft_delete")
        logger.debug("entity_soft_deleted", entity=self.name, entity_id=str(key))

    async def hard_delete(self, key: Any) -> None:
        async with self._session("hard_delete", key) as s:
            cursor = await s.execute(*self.statements.hard_delete(key))
            if cursor.rowcount == 0:
                raise self._not_found(key, "hard_delete")
        logger.info("entity_hard_deleted", entity=self.name, entity_id=str(key))

    async def raw_query(self, sql: str, params: tuple = ()) -> list[E]:
        async with self._session("raw_query") as s:
            cursor = await s.execute(sql, params)
            return self._hydrate_all(cursor.description, await cursor.fetchall())

    async def raw_rows(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        async with self._session("raw_rows") as s:
            cursor = await s.execute(sql, params)
            columns = [col[0] for col in cursor.description]
            return [dict(zip(columns, row, strict=True)) for row in await cursor.fetchall()]

    async def raw_execute(self, sql: str, params: tuple = ()) -> int:
        async with self._session("raw_execute") as s:
            return (await s.execute(sql, params)).rowcount

    async def query_joined(
        self,
        sql: str,
        params: tuple,
        types: Sequence[type],
        *relations: Relation,
        split_on: str | Sequence[str] | None = None,
    ) -> list[E]:
        mapper = JoinMapper(types, self.registry, split_on)
        async with self._session("query_joined") as s:
            cursor = await s.execute(sql, params)
            columns = [col[0] for col in cursor.description]
            mapped = mapper.map(columns, await cursor.fetchall())
        return self._joined(mapped, relations)


__all__ = ["Repository", "AsyncRepository"]
