"""
Parameterized statement generation for both dialects.

:class:`StatementBuilder` turns an :class:`~examvault.core.schema.EntityDescriptor`
into ready-to-execute :class:`Statement` objects (SQL text plus bound
parameters). Only identifiers drawn from the descriptor ever reach SQL text;
caller-supplied values always travel as parameters.

Manifesto:
    The soft-delete filter, the forced ``ModifiedAt`` and the pagination
    arithmetic are written exactly once, here. A repository that builds its
    own ``SELECT`` is a repository that will eventually leak deleted rows.

Architecture:
    ::

        Criteria.eq("media_file_id", mid) & Criteria.eq("size", Size.SMALL)
                  │  render(descriptor, dialect, registry)
                  ▼
        Fragment('"MediaFileId" = ? AND "Size" = ?', ('…', 2))
                  │
                  ▼
        StatementBuilder.select_paged(PageRequest(3, 20, PageBase.ONE), where)
                  │
                  ▼
        SELECT "MediaThumbnailId", … FROM "MediaThumbnails"
        WHERE "IsDeleted" = 0 AND ("MediaFileId" = ? AND "Size" = ?)
        ORDER BY "CreatedAt" DESC, "MediaThumbnailId" DESC LIMIT ? OFFSET ?
        params = ('…', 2, 20, 40)

    Page numbering:
        PageBase.ZERO   offset = number * size          (0, 20) -> 0; (2, 20) -> 40
        PageBase.ONE    offset = (number - 1) * size    (1, 20) -> 0

Guardrails:
    ❌ DON'T: f"... WHERE {column} = '{value}'"
    ✅ DO: Criteria.eq(column, value)

    ❌ DON'T: Assume a page convention
    ✅ DO: Pass PageRequest(number, size, base) with the base the caller uses

Tags:
    sql, statements, pagination, criteria, soft-delete

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any

from examvault.core.coercion import TypeCoercionRegistry
from examvault.core.dialect import Dialect
from examvault.core.errors import ValidationError
from examvault.core.schema import CREATED_AT, DELETED_AT, IS_DELETED, MODIFIED_AT, EntityDescriptor


@dataclass(frozen=True)
class Statement:
    """SQL text plus its positional parameters."""

    sql: str
    params: tuple = ()

    def __iter__(self) -> Iterator[Any]:
        yield self.sql
        yield self.params


@dataclass(frozen=True)
class Fragment:
    """A trusted predicate fragment and the parameters it binds."""

    sql: str
    params: tuple = ()

    def __and__(self, other: Fragment) -> Fragment:
        return Fragment(f"({self.sql}) AND ({other.sql})", self.params + other.params)

    def __or__(self, other: Fragment) -> Fragment:
        return Fragment(f"({self.sql}) OR ({other.sql})", self.params + other.params)


# =============================================================================
# PAGINATION
# =============================================================================


class PageBase(IntEnum):
    """Which number the first page carries."""

    ZERO = 0
    ONE = 1


@dataclass(frozen=True)
class PageRequest:
    number: int
    size: int
    base: PageBase = PageBase.ONE

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValidationError(
                f"Page size must be at least 1, got {self.size}", field="size", value=self.size
            )
        if self.number < self.base:
            raise ValidationError(
                f"Page number {self.number} is below the first page ({int(self.base)})",
                field="number",
                value=self.number,
            )

    @property
    def offset(self) -> int:
        return (self.number - int(self.base)) * self.size


# =============================================================================
# CRITERIA
# =============================================================================

_COMPARISONS = {"eq": "=", "ne": "<>", "lt": "<", "le": "<=", "gt": ">", "ge": ">=", "like": "LIKE"}


class Criteria:
    """
    Typed predicate tree.

    Column slots take an attribute or column name and are resolved against
    the descriptor at render time; unknown names raise
    :class:`~examvault.core.errors.ConfigurationError`.

    Example:
        >>> where = Criteria.eq("media_file_id", mid) & ~Criteria.is_null("quality")
    """

    def __init__(
        self,
        op: str,
        column: str | None = None,
        value: Any = None,
        children: tuple[Criteria, ...] = (),
    ):
        self.op = op
        self.column = column
        self.value = value
        self.children = children

    # -- leaves -----------------------------------------------------------

    @classmethod
    def eq(cls, column: str, value: Any) -> Criteria:
        return cls("eq", column, value)

    @classmethod
    def ne(cls, column: str, value: Any) -> Criteria:
        return cls("ne", column, value)

    @classmethod
    def lt(cls, column: str, value: Any) -> Criteria:
        return cls("lt", column, value)

    @classmethod
    def le(cls, column: str, value: Any) -> Criteria:
        return cls("le", column, value)

    @classmethod
    def gt(cls, column: str, value: Any) -> Criteria:
        return cls("gt", column, value)

    @classmethod
    def ge(cls, column: str, value: Any) -> Criteria:
        return cls("ge", column, value)

    @classmethod
    def like(cls, column: str, pattern: str) -> Criteria:
        return cls("like", column, pattern)

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> Criteria:
        return cls("in", column, tuple(values))

    @classmethod
    def is_null(cls, column: str) -> Criteria:
        return cls("null", column)

    # -- combinators ------------------------------------------------------

    def __and__(self, other: Criteria) -> Criteria:
        return Criteria("and", children=(self, other))

    def __or__(self, other: Criteria) -> Criteria:
        return Criteria("or", children=(self, other))

    def __invert__(self) -> Criteria:
        return Criteria("not", children=(self,))

    def render(
        self,
        descriptor: EntityDescriptor,
        dialect: Dialect,
        registry: TypeCoercionRegistry,
    ) -> Fragment:
        if self.op in ("and", "or", "not"):
            parts = [c.render(descriptor, dialect, registry) for c in self.children]
            if self.op == "not":
                return Fragment(f"NOT ({parts[0].sql})", parts[0].params)
            joiner = " AND " if self.op == "and" else " OR "
            return Fragment(
                joiner.join(f"({p.sql})" for p in parts),
                tuple(v for p in parts for v in p.params),
            )

        column = dialect.quote(descriptor.column(self.column).column)
        if self.op == "null":
            return Fragment(f"{column} IS NULL")
        if self.op == "in":
            if not self.value:
                return Fragment("1 = 0")
            params = tuple(registry.to_storage(v) for v in self.value)
            return Fragment(f"{column} IN ({dialect.placeholders(len(params))})", params)
        if self.value is None and self.op in ("eq", "ne"):
            return Fragment(f"{column} IS {'NOT ' if self.op == 'ne' else ''}NULL")
        return Fragment(
            f"{column} {_COMPARISONS[self.op]} ?", (registry.to_storage(self.value),)
        )

    def __repr__(self) -> str:
        if self.children:
            return f"Criteria({self.op}, {list(self.children)!r})"
        return f"Criteria({self.op}, {self.column!r}, {self.value!r})"


@dataclass(frozen=True)
class OrderBy:
    column: str
    descending: bool = False

    @classmethod
    def asc(cls, column: str) -> OrderBy:
        return cls(column, False)

    @classmethod
    def desc(cls, column: str) -> OrderBy:
        return cls(column, True)

    def render(self, descriptor: EntityDescriptor, dialect: Dialect) -> str:
        name = dialect.quote(descriptor.column(self.column).column)
        return f"{name} {'DESC' if self.descending else 'ASC'}"


Where = Criteria | Fragment | None
Ordering = OrderBy | Sequence[OrderBy] | None


# =============================================================================
# BUILDER
# =============================================================================


class StatementBuilder:
    """Emit every facade statement for one entity in one dialect."""

    def __init__(
        self,
        descriptor: EntityDescriptor,
        dialect: Dialect,
        registry: TypeCoercionRegistry,
    ):
        self.descriptor = descriptor
        self.dialect = dialect
        self.registry = registry

    # -- fragments --------------------------------------------------------

    def q(self, identifier: str) -> str:
        return self.dialect.quote(identifier)

    @property
    def table(self) -> str:
        return self.q(self.descriptor.table)

    @property
    def pk(self) -> str:
        return self.q(self.descriptor.primary_key)

    def select_list(self, alias: str | None = None) -> str:
        """Quoted column list, optionally qualified by a table alias."""
        prefix = f"{alias}." if alias else ""
        return ", ".join(prefix + self.q(c) for c in self.descriptor.column_names)

    def not_deleted(self, alias: str | None = None) -> str:
        prefix = f"{alias}." if alias else ""
        return f"{prefix}{self.q(IS_DELETED)} = {self.dialect.boolean_false()}"

    def render_where(self, where: Where) -> Fragment | None:
        if where is None:
            return None
        if isinstance(where, Fragment):
            return where
        return where.render(self.descriptor, self.dialect, self.registry)

    def render_order(self, order_by: Ordering) -> str:
        if order_by is None:
            return f" ORDER BY {self.q(CREATED_AT)} DESC, {self.pk} DESC"
        if isinstance(order_by, OrderBy):
            order_by = [order_by]
        if not order_by:
            return f" ORDER BY {self.q(CREATED_AT)} DESC, {self.pk} DESC"
        return " ORDER BY " + ", ".join(o.render(self.descriptor, self.dialect) for o in order_by)

    def _filtered(self, head: str, where: Where, include_deleted: bool) -> tuple[str, tuple]:
        clauses: list[str] = [] if include_deleted else [self.not_deleted()]
        params: tuple = ()
        fragment = self.render_where(where)
        if fragment is not None:
            clauses.append(f"({fragment.sql})")
            params = fragment.params
        if clauses:
            head += " WHERE " + " AND ".join(clauses)
        return head, params

    def key_param(self, key: Any) -> Any:
        return self.registry.to_storage(key)

    # -- statements -------------------------------------------------------

    def insert(self, entity: Any) -> Statement:
        columns = self.descriptor.insert_columns
        returning = self.descriptor.primary_key if self.descriptor.key_generated else None
        sql = self.dialect.insert(self.descriptor.table, [c.column for c in columns], returning)
        return Statement(sql, self.registry.entity_params(self.descriptor, entity, columns))

    def update_sql(self) -> str:
        assignments = [f"{self.q(c.column)} = ?" for c in self.descriptor.update_columns]
        assignments.append(f"{self.q(MODIFIED_AT)} = ?")
        return (
            f"UPDATE {self.table} SET {', '.join(assignments)} "
            f"WHERE {self.pk} = ? AND {self.not_deleted()}"
        )

    def update(self, entity: Any, now: datetime) -> Statement:
        columns = self.descriptor.update_columns
        params = self.registry.entity_params(self.descriptor, entity, columns) + (
            self.registry.to_storage(now),
            self.key_param(getattr(entity, self.descriptor.key_attribute)),
        )
        return Statement(self.update_sql(), params)

    def select_by_id(self, key: Any, *, include_deleted: bool = False) -> Statement:
        head = f"SELECT {self.select_list()} FROM {self.table} WHERE {self.pk} = ?"
        if not include_deleted:
            head += f" AND {self.not_deleted()}"
        return Statement(head, (self.key_param(key),))

    def select_all(
        self, where: Where = None, order_by: Ordering = None, *, include_deleted: bool = False
    ) -> Statement:
        sql, params = self._filtered(
            f"SELECT {self.select_list()} FROM {self.table}", where, include_deleted
        )
        return Statement(sql + self.render_order(order_by), params)

    def select_paged(
        self, page: PageRequest, where: Where = None, order_by: Ordering = None
    ) -> Statement:
        sql, params = self._filtered(
            f"SELECT {self.select_list()} FROM {self.table}", where, False
        )
        suffix, page_params = self.dialect.paginate(page.offset, page.size)
        return Statement(sql + self.render_order(order_by) + suffix, params + page_params)

    def count(self, where: Where = None, *, include_deleted: bool = False) -> Statement:
        sql, params = self._filtered(f"SELECT COUNT(*) FROM {self.table}", where, include_deleted)
        return Statement(sql, params)

    def exists(self, key: Any) -> Statement:
        return Statement(
            f"SELECT 1 FROM {self.table} WHERE {self.pk} = ? AND {self.not_deleted()}",
            (self.key_param(key),),
        )

    def soft_delete(self, key: Any, now: datetime) -> Statement:
        stamp = self.registry.to_storage(now)
        return Statement(
            f"UPDATE {self.table} SET {self.q(IS_DELETED)} = {self.dialect.boolean_true()}, "
            f"{self.q(DELETED_AT)} = ?, {self.q(MODIFIED_AT)} = ? "
            f"WHERE {self.pk} = ? AND {self.not_deleted()}",
            (stamp, stamp, self.key_param(key)),
        )

    def hard_delete(self, key: Any) -> Statement:
        return Statement(f"DELETE FROM {self.table} WHERE {self.pk} = ?", (self.key_param(key),))

    def create_table(self) -> Statement:
        """DDL for the entity's table (development databases and tests)."""
        d = self.descriptor
        defs = []
        for c in d.columns:
            if c.column == d.primary_key and d.key_generated:
                column_type = self.dialect.identity_type()
            else:
                column_type = self.dialect.column_type(c.python_type)
            null = "NULL" if c.optional and c.column != d.primary_key else "NOT NULL"
            defs.append(f"{self.q(c.column)} {column_type} {null}")
        return Statement(self.dialect.create_table_if_absent(d.table, defs, d.primary_key))


__all__ = [
    "Statement",
    "Fragment",
    "PageBase",
    "PageRequest",
    "Criteria",
    "OrderBy",
    "Where",
    "Ordering",
    "StatementBuilder",
]
