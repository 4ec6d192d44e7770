"""
Invariant-preserving transactional operations.

Two compound operations must leave the store consistent even when a
statement fails halfway: promoting one row to the default of its group,
and archiving old rows before soft-deleting them. Both run inside a
:func:`unit_of_work` (one connection, one explicit transaction, rollback
and re-raise on any failure).

Manifesto:
    Readers must never observe two default thumbnails for one media file,
    or an audit log that is both archived and still live. The transaction
    boundary is the only lock the engine relies on, so every statement of
    a compound operation runs on the same handle between ``begin()`` and
    ``commit()``.

Architecture:
    ::

        unit_of_work(provider)
        ┌──────────────────────────────────────────────────────────┐
        │ handle = provider.open(); handle.begin()                  │
        │   yield handle                                            │
        │   ok  → handle.commit()                                   │
        │   err → handle.rollback(); raise                          │
        │ handle.close()   (always)                                 │
        └──────────────────────────────────────────────────────────┘

        promote_default(id)                 archive_and_purge(cutoff)
        1. SELECT group of id (live)        1. CREATE <Table>Archive if absent
           missing → NotFoundError          2. INSERT … SELECT live rows < cutoff
        2. clear IsDefault in group         3. soft-delete the same rows
        3. set IsDefault on id              4. copied != purged → ConflictError
        4. exactly one default? else        5. return copied
           ConflictError

Guardrails:
    ❌ DON'T: Call caller-supplied code inside a unit of work
    ✅ DO: Compute inputs first, then open the unit

    ❌ DON'T: Catch and continue after a failed statement
    ✅ DO: Let the unit roll back and re-raise

Tags:
    transactions, unit-of-work, exclusivity, archive, soft-delete

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import Any

from examvault.core.coercion import TypeCoercionRegistry
from examvault.core.errors import ConflictError, NotFoundError, map_store_error
from examvault.core.logging import LogContext, get_logger
from examvault.core.protocols import (
    AsyncConnectionHandle,
    AsyncConnectionProvider,
    ConnectionHandle,
    ConnectionProvider,
)
from examvault.core.schema import DELETED_AT, IS_DELETED, MODIFIED_AT, EntityDescriptor
from examvault.core.statements import StatementBuilder
from examvault.core.timestamps import utc_now

logger = get_logger(__name__)

ARCHIVED_AT = "ArchivedAt"
DEFAULT_FLAG = "IsDefault"


# =============================================================================
# ERROR BOUNDARY
# =============================================================================


@contextmanager
def store_errors(error_types: tuple[type[BaseException], ...], **context: Any) -> Iterator[None]:
    """Translate driver exceptions into VaultErrors tagged with ``context``.

    ``entity`` and ``operation`` are also bound to the log context for the
    duration of the block.
    """
    scope = {k: context[k] for k in ("entity", "operation") if context.get(k) is not None}
    with LogContext(**scope):
        try:
            yield
        except error_types as e:
            error = map_store_error(e, **context)
            logger.warning("store_operation_failed", **error.to_dict())
            raise error from e


# =============================================================================
# UNIT OF WORK
# =============================================================================


@contextmanager
def unit_of_work(provider: ConnectionProvider) -> Iterator[ConnectionHandle]:
    """One connection, one transaction: commit on success, rollback on error."""
    with provider.connection() as handle:
        handle.begin()
        try:
            yield handle
        except BaseException as e:
            try:
                handle.rollback()
            finally:
                logger.info("unit_of_work_rolled_back", error=type(e).__name__)
            raise
        handle.commit()


@asynccontextmanager
async def async_unit_of_work(
    provider: AsyncConnectionProvider,
) -> AsyncIterator[AsyncConnectionHandle]:
    async with provider.connection() as handle:
        await handle.begin()
        try:
            yield handle
        except BaseException as e:
            try:
                await handle.rollback()
            finally:
                logger.info("unit_of_work_rolled_back", error=type(e).__name__)
            raise
        await handle.commit()


# =============================================================================
# EXCLUSIVE-DEFAULT PROMOTION
# =============================================================================


class _Promotion:
    """Statements for promoting ``key`` to the default of its group."""

    def __init__(
        self,
        descriptor: EntityDescriptor,
        builder: StatementBuilder,
        group_columns: Sequence[str],
        flag_column: str,
    ):
        if not group_columns:
            raise ValueError("promote_default needs at least one group column")
        self.d = descriptor
        self.b = builder
        self.groups = [descriptor.column(c).column for c in group_columns]
        self.flag = builder.q(descriptor.column(flag_column).column)
        self.true = builder.dialect.boolean_true()
        self.false = builder.dialect.boolean_false()

    def resolve_group(self, key: Any) -> tuple[str, tuple]:
        cols = ", ".join(self.b.q(c) for c in self.groups)
        return (
            f"SELECT {cols} FROM {self.b.table} WHERE {self.b.pk} = ? AND {self.b.not_deleted()}",
            (self.b.key_param(key),),
        )

    def _group_filter(self, values: Sequence[Any]) -> tuple[str, tuple]:
        clauses, params = [], []
        for column, value in zip(self.groups, values, strict=True):
            if value is None:
                clauses.append(f"{self.b.q(column)} IS NULL")
            else:
                clauses.append(f"{self.b.q(column)} = ?")
                params.append(value)
        return " AND ".join(clauses), tuple(params)

    def clear_others(self, key: Any, values: Sequence[Any], stamp: Any) -> tuple[str, tuple]:
        where, params = self._group_filter(values)
        return (
            f"UPDATE {self.b.table} SET {self.flag} = {self.false}, {self.b.q(MODIFIED_AT)} = ? "
            f"WHERE {where} AND {self.b.pk} <> ? AND {self.flag} = {self.true} "
            f"AND {self.b.not_deleted()}",
            (stamp, *params, self.b.key_param(key)),
        )

    def set_target(self, key: Any, stamp: Any) -> tuple[str, tuple]:
        return (
            f"UPDATE {self.b.table} SET {self.flag} = {self.true}, {self.b.q(MODIFIED_AT)} = ? "
            f"WHERE {self.b.pk} = ? AND {self.b.not_deleted()}",
            (stamp, self.b.key_param(key)),
        )

    def count_defaults(self, values: Sequence[Any]) -> tuple[str, tuple]:
        where, params = self._group_filter(values)
        return (
            f"SELECT COUNT(*) FROM {self.b.table} "
            f"WHERE {where} AND {self.flag} = {self.true} AND {self.b.not_deleted()}",
            params,
        )

    def not_found(self, key: Any) -> NotFoundError:
        return NotFoundError(f"{self.d.name} {key} not found").with_context(
            entity=self.d.name, operation="promote_default", entity_id=key, table=self.d.table
        )

    def conflict(self, key: Any, defaults: int) -> ConflictError:
        return ConflictError(
            f"{defaults} default rows in the group of {self.d.name} {key}, expected 1"
        ).with_context(
            entity=self.d.name, operation="promote_default", entity_id=key, table=self.d.table
        )


def promote_default(
    provider: ConnectionProvider,
    descriptor: EntityDescriptor,
    key: Any,
    group_columns: Sequence[str],
    *,
    registry: TypeCoercionRegistry,
    flag_column: str = DEFAULT_FLAG,
    now: datetime | None = None,
) -> None:
    """Make ``key`` the only default row of its group.

    The group is the set of live rows sharing ``group_columns`` with the
    target (e.g. ``("media_file_id", "size")``).

    Raises:
        NotFoundError: ``key`` is missing or soft-deleted; nothing changes.
        ConflictError: More or fewer than one default remains afterwards.
    """
    builder = StatementBuilder(descriptor, provider.dialect, registry)
    plan = _Promotion(descriptor, builder, group_columns, flag_column)
    stamp = registry.to_storage(now or utc_now())
    context = {"entity": descriptor.name, "operation": "promote_default", "entity_id": key}
    with store_errors(provider.error_types, table=descriptor.table, **context):
        with unit_of_work(provider) as handle:
            row = handle.execute(*plan.resolve_group(key)).fetchone()
            if row is None:
                raise plan.not_found(key)
            values = tuple(row)
            cleared = handle.execute(*plan.clear_others(key, values, stamp)).rowcount
            handle.execute(*plan.set_target(key, stamp))
            defaults = handle.execute(*plan.count_defaults(values)).fetchone()[0]
            if defaults != 1:
                raise plan.conflict(key, defaults)
    logger.info(
        "default_promoted", entity=descriptor.name, entity_id=str(key), cleared=cleared
    )


async def async_promote_default(
    provider: AsyncConnectionProvider,
    descriptor: EntityDescriptor,
    key: Any,
    group_columns: Sequence[str],
    *,
    registry: TypeCoercionRegistry,
    flag_column: str = DEFAULT_FLAG,
    now: datetime | None = None,
) -> None:
    """Async :func:`promote_default`."""
    builder = StatementBuilder(descriptor, provider.dialect, registry)
    plan = _Promotion(descriptor, builder, group_columns, flag_column)
    stamp = registry.to_storage(now or utc_now())
    context = {"entity": descriptor.name, "operation": "promote_default", "entity_id": key}
    with store_errors(provider.error_types, table=descriptor.table, **context):
        async with async_unit_of_work(provider) as handle:
            row = await (await handle.execute(*plan.resolve_group(key))).fetchone()
            if row is None:
                raise plan.not_found(key)
            values = tuple(row)
            cleared = (await handle.execute(*plan.clear_others(key, values, stamp))).rowcount
            await handle.execute(*plan.set_target(key, stamp))
            defaults = (await (await handle.execute(*plan.count_defaults(values))).fetchone())[0]
            if defaults != 1:
                raise plan.conflict(key, defaults)
    logger.info(
        "default_promoted", entity=descriptor.name, entity_id=str(key), cleared=cleared
    )


# =============================================================================
# ARCHIVE-AND-PURGE
# =============================================================================


class _Archive:
    """Statements for copying rows older than a cutoff and soft-deleting them."""

    def __init__(
        self,
        descriptor: EntityDescriptor,
        builder: StatementBuilder,
        cutoff_column: str,
        archive_suffix: str,
    ):
        self.d = descriptor
        self.b = builder
        self.cutoff = builder.q(descriptor.column(cutoff_column).column)
        self.archive_table = descriptor.table + archive_suffix

    def create_archive(self) -> str:
        dialect = self.b.dialect
        defs = [
            f"{self.b.q(c.column)} {dialect.column_type(c.python_type)}" for c in self.d.columns
        ]
        defs.append(f"{self.b.q(ARCHIVED_AT)} {dialect.column_type(datetime)}")
        return dialect.create_table_if_absent(self.archive_table, defs, self.d.primary_key)

    def copy(self, cutoff: Any, stamp: Any) -> tuple[str, tuple]:
        columns = self.b.select_list()
        return (
            f"INSERT INTO {self.b.q(self.archive_table)} ({columns}, {self.b.q(ARCHIVED_AT)}) "
            f"SELECT {columns}, ? FROM {self.b.table} "
            f"WHERE {self.cutoff} < ? AND {self.b.not_deleted()}",
            (stamp, cutoff),
        )

    def purge(self, cutoff: Any, stamp: Any) -> tuple[str, tuple]:
        return (
            f"UPDATE {self.b.table} SET {self.b.q(IS_DELETED)} = {self.b.dialect.boolean_true()}, "
            f"{self.b.q(DELETED_AT)} = ?, {self.b.q(MODIFIED_AT)} = ? "
            f"WHERE {self.cutoff} < ? AND {self.b.not_deleted()}",
            (stamp, stamp, cutoff),
        )

    def mismatch(self, copied: int, purged: int) -> ConflictError:
        return ConflictError(
            f"Archived {copied} {self.d.table} rows but soft-deleted {purged}"
        ).with_context(
            entity=self.d.name, operation="archive_and_purge", table=self.archive_table
        )


def archive_and_purge(
    provider: ConnectionProvider,
    descriptor: EntityDescriptor,
    cutoff: datetime,
    *,
    registry: TypeCoercionRegistry,
    cutoff_column: str = "CreatedAt",
    archive_suffix: str = "Archive",
    now: datetime | None = None,
) -> int:
    """Move live rows older than ``cutoff`` to ``<Table><suffix>``.

    Copy and soft-delete commit together or not at all.

    Returns:
        Number of rows archived.

    Raises:
        ConflictError: The copy and the soft-delete touched different row
            counts, or a row is already present in the archive.
    """
    builder = StatementBuilder(descriptor, provider.dialect, registry)
    plan = _Archive(descriptor, builder, cutoff_column, archive_suffix)
    stamp = registry.to_storage(now or utc_now())
    limit = registry.to_storage(cutoff)
    context = {"entity": descriptor.name, "operation": "archive_and_purge"}
    with store_errors(provider.error_types, table=plan.archive_table, **context):
        with unit_of_work(provider) as handle:
            handle.execute(plan.create_archive())
            copied = handle.execute(*plan.copy(limit, stamp)).rowcount
            purged = handle.execute(*plan.purge(limit, stamp)).rowcount
            if copied != purged:
                raise plan.mismatch(copied, purged)
    logger.info(
        "archive_completed", entity=descriptor.name, archive=plan.archive_table, count=copied
    )
    return copied


async def async_archive_and_purge(
    provider: AsyncConnectionProvider,
    descriptor: EntityDescriptor,
    cutoff: datetime,
    *,
    registry: TypeCoercionRegistry,
    cutoff_column: str = "CreatedAt",
    archive_suffix: str = "Archive",
    now: datetime | None = None,
) -> int:
    """Async :func:`archive_and_purge`."""
    builder = StatementBuilder(descriptor, provider.dialect, registry)
    plan = _Archive(descriptor, builder, cutoff_column, archive_suffix)
    stamp = registry.to_storage(now or utc_now())
    limit = registry.to_storage(cutoff)
    context = {"entity": descriptor.name, "operation": "archive_and_purge"}
    with store_errors(provider.error_types, table=plan.archive_table, **context):
        async with async_unit_of_work(provider) as handle:
            await handle.execute(plan.create_archive())
            copied = (await handle.execute(*plan.copy(limit, stamp))).rowcount
            purged = (await handle.execute(*plan.purge(limit, stamp))).rowcount
            if copied != purged:
                raise plan.mismatch(copied, purged)
    logger.info(
        "archive_completed", entity=descriptor.name, archive=plan.archive_table, count=copied
    )
    return copied


__all__ = [
    "ARCHIVED_AT",
    "DEFAULT_FLAG",
    "store_errors",
    "unit_of_work",
    "async_unit_of_work",
    "promote_default",
    "async_promote_default",
    "archive_and_purge",
    "async_archive_and_purge",
]
