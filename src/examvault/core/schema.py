"""
Schema introspection: entity type -> table, primary key and columns.

Every repository in examvault is generic over a dataclass entity. This
module derives the mapping between that dataclass and its table once per
type and caches it for the life of the process.

Manifesto:
    Table and key names must be a pure function of the type. Two calls
    for the same type return the *same* descriptor object; a type that
    cannot be mapped fails loudly the first time it is described, not
    halfway through a write.

    - **Convention first:** ``Role`` -> ``Roles`` / ``RoleId``
    - **Explicit overrides:** ``__table__``, ``__primary_key__``, field
      ``metadata={"column": ...}`` and ``metadata={"transient": True}``
    - **Validated at startup:** ``register_entities(...)`` describes every
      entity eagerly so configuration errors surface before traffic

Architecture:
    ::

        @dataclass(kw_only=True)
        class MediaThumbnail(AuditedEntity):
            media_thumbnail_id: UUID | None = None   -> MediaThumbnailId (PK)
            media_file_id: UUID                      -> MediaFileId
            size: ThumbnailSize                      -> Size
            is_default: bool = False                 -> IsDefault
            media_file: MediaFile | None = None      -> (navigation, skipped)

                    describe(MediaThumbnail)
                             │
                             ▼
        ┌──────────────────────────────────────────────────────────┐
        │ EntityDescriptor                                          │
        │   table        = "MediaThumbnails"                        │
        │   primary_key  = "MediaThumbnailId"  (client-assigned)    │
        │   columns      = (MediaThumbnailId, MediaFileId, Size, …) │
        │   insert_columns / update_columns                          │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> table_name_for("Role"), table_name_for("Category")
    ('Roles', 'Categories')
    >>> table_name_for("RoleEntity")
    'Roles'
    >>> column_name_for("media_file_id")
    'MediaFileId'

Guardrails:
    ❌ DON'T: Build column lists by hand in repository code
    ✅ DO: Use ``descriptor.insert_columns`` / ``descriptor.update_columns``

    ❌ DON'T: Accept a column name from a request and put it in SQL
    ✅ DO: Resolve it with ``descriptor.column(name)`` first

Tags:
    schema, introspection, dataclass, mapping, cache

Doc-Types:
    - API Reference
    - Entity Mapping Guide
"""

from __future__ import annotations

import dataclasses
import threading
import types
import typing
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

from examvault.core.errors import ConfigurationError
from examvault.core.logging import get_logger

logger = get_logger(__name__)

# Audit/lifecycle columns every entity carries
CREATED_AT = "CreatedAt"
MODIFIED_AT = "ModifiedAt"
IS_DELETED = "IsDeleted"
DELETED_AT = "DeletedAt"
AUDIT_COLUMNS = (CREATED_AT, MODIFIED_AT, IS_DELETED, DELETED_AT)

# Conventional type-name suffix stripped before pluralizing
ENTITY_SUFFIX = "Entity"

SCALAR_TYPES: frozenset[type] = frozenset(
    {int, float, bool, str, bytes, datetime, date, time, Decimal, UUID}
)
KEY_TYPES: frozenset[type] = frozenset({int, str, UUID})


# =============================================================================
# NAMING CONVENTIONS
# =============================================================================


def strip_entity_suffix(type_name: str) -> str:
    """``RoleEntity`` -> ``Role``; a bare ``Entity`` is left alone."""
    if type_name.endswith(ENTITY_SUFFIX) and len(type_name) > len(ENTITY_SUFFIX):
        return type_name[: -len(ENTITY_SUFFIX)]
    return type_name


def pluralize(word: str) -> str:
    """Simple suffix pluralization: y -> ies; s/x/z/ch/sh -> +es; else +s."""
    lower = word.lower()
    if lower.endswith("y"):
        return word[:-1] + "ies"
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def table_name_for(type_name: str) -> str:
    return pluralize(strip_entity_suffix(type_name))


def primary_key_for(type_name: str) -> str:
    return f"{strip_entity_suffix(type_name)}Id"


def column_name_for(attribute: str) -> str:
    """snake_case attribute -> PascalCase column."""
    return "".join(part[:1].upper() + part[1:] for part in attribute.split("_") if part)


# =============================================================================
# DESCRIPTORS
# =============================================================================


@dataclass(frozen=True)
class ColumnInfo:
    """One persistable field."""

    attribute: str
    column: str
    python_type: type
    optional: bool


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Immutable mapping of one entity type to its table.

    ``columns`` holds every persistable column: the primary key first, then
    the rest in field-declaration order. Lookups by attribute or column name go through
    :meth:`column`, which is the only way a caller-supplied name can reach
    SQL text.
    """

    entity_type: type
    table: str
    primary_key: str
    key_attribute: str
    key_type: type
    columns: tuple[ColumnInfo, ...]
    _index: dict[str, ColumnInfo] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        for info in self.columns:
            self._index[info.attribute] = info
            self._index[info.column] = info
            self._index[info.column.lower()] = info

    @property
    def name(self) -> str:
        return self.entity_type.__name__

    @property
    def key_generated(self) -> bool:
        """Integer keys are identity columns assigned by the store."""
        return self.key_type is int

    @property
    def key_column(self) -> ColumnInfo:
        return self.column(self.primary_key)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.column for c in self.columns)

    @property
    def insert_columns(self) -> tuple[ColumnInfo, ...]:
        if self.key_generated:
            return tuple(c for c in self.columns if c.column != self.primary_key)
        return self.columns

    @property
    def update_columns(self) -> tuple[ColumnInfo, ...]:
        """SET list: everything but the key and the audit columns.

        ModifiedAt is forced by the statement; IsDeleted and DeletedAt only
        change through soft_delete.
        """
        excluded = {self.primary_key, *AUDIT_COLUMNS}
        return tuple(c for c in self.columns if c.column not in excluded)

    def column(self, name: str) -> ColumnInfo:
        """Resolve an attribute or column name to its :class:`ColumnInfo`.

        Raises:
            ConfigurationError: ``name`` is not a persistable column of
                this entity.
        """
        info = self._index.get(name) or self._index.get(name.lower())
        if info is None:
            raise ConfigurationError(
                f"{self.name} has no column named {name!r}"
            ).with_context(entity=self.name, table=self.table)
        return info

    def has_column(self, name: str) -> bool:
        return name in self._index or name.lower() in self._index

    def __repr__(self) -> str:
        return (
            f"EntityDescriptor({self.name} -> {self.table}, "
            f"pk={self.primary_key}, columns={len(self.columns)})"
        )


# =============================================================================
# INTROSPECTION
# =============================================================================


def _unwrap_optional(hint: Any) -> tuple[Any, bool]:
    origin = typing.get_origin(hint)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        optional = len(args) < len(typing.get_args(hint))
        if len(args) == 1:
            return args[0], optional
        return hint, optional
    return hint, False


def _is_scalar(hint: Any) -> bool:
    if not isinstance(hint, type):
        return False
    return hint in SCALAR_TYPES or issubclass(hint, Enum)


def _build_descriptor(entity_type: type) -> EntityDescriptor:
    name = getattr(entity_type, "__name__", repr(entity_type))
    if not (isinstance(entity_type, type) and dataclasses.is_dataclass(entity_type)):
        raise ConfigurationError(f"{name} is not a dataclass").with_context(entity=name)

    params = getattr(entity_type, "__dataclass_params__", None)
    if params is not None and params.frozen:
        raise ConfigurationError(
            f"{name} is frozen; its primary key cannot be assigned"
        ).with_context(entity=name)

    try:
        hints = typing.get_type_hints(entity_type)
    except (NameError, TypeError) as e:
        raise ConfigurationError(
            f"Cannot resolve field types of {name}: {e}", cause=e
        ).with_context(entity=name) from e

    columns: list[ColumnInfo] = []
    for f in dataclasses.fields(entity_type):
        if not f.init or f.metadata.get("transient"):
            continue
        hint, optional = _unwrap_optional(hints.get(f.name, f.type))
        override = f.metadata.get("column")
        if not _is_scalar(hint) and not (override and isinstance(hint, type)):
            continue  # navigation / collection
        columns.append(
            ColumnInfo(
                attribute=f.name,
                column=override or column_name_for(f.name),
                python_type=hint,
                optional=optional,
            )
        )

    if not columns:
        raise ConfigurationError(f"{name} has no persistable columns").with_context(entity=name)

    table = getattr(entity_type, "__table__", None) or table_name_for(name)
    primary_key = getattr(entity_type, "__primary_key__", None) or primary_key_for(name)

    key = next((c for c in columns if c.column == primary_key), None)
    if key is None:
        raise ConfigurationError(
            f"{name} has no primary-key field for column {primary_key!r}"
        ).with_context(entity=name, table=table)
    if key.python_type not in KEY_TYPES:
        raise ConfigurationError(
            f"{name}.{key.attribute} has unsupported key type {key.python_type.__name__}"
        ).with_context(entity=name, table=table)

    # Key column leads; joined segments split on it
    columns.remove(key)
    columns.insert(0, key)

    present = {c.column for c in columns}
    missing = [c for c in AUDIT_COLUMNS if c not in present]
    if missing:
        raise ConfigurationError(
            f"{name} is missing audit columns: {', '.join(missing)}"
        ).with_context(entity=name, table=table)

    return EntityDescriptor(
        entity_type=entity_type,
        table=table,
        primary_key=primary_key,
        key_attribute=key.attribute,
        key_type=key.python_type,
        columns=tuple(columns),
    )


# =============================================================================
# CACHE
# =============================================================================

_CACHE: dict[type, EntityDescriptor] = {}
_LOCK = threading.Lock()


def describe(entity_type: type) -> EntityDescriptor:
    """Return the cached descriptor for ``entity_type``, building it once.

    Raises:
        ConfigurationError: The type cannot be mapped (see module docs).
    """
    descriptor = _CACHE.get(entity_type)
    if descriptor is not None:
        return descriptor
    with _LOCK:
        descriptor = _CACHE.get(entity_type)
        if descriptor is None:
            descriptor = _build_descriptor(entity_type)
            _CACHE[entity_type] = descriptor
            logger.debug(
                "entity_described",
                entity=descriptor.name,
                table=descriptor.table,
                primary_key=descriptor.primary_key,
                columns=len(descriptor.columns),
            )
    return descriptor


def register_entities(*entity_types: type) -> list[EntityDescriptor]:
    """Describe every type eagerly; call at startup."""
    return [describe(t) for t in entity_types]


def clear_cache() -> None:
    """Forget every descriptor (tests only)."""
    with _LOCK:
        _CACHE.clear()


__all__ = [
    "AUDIT_COLUMNS",
    "CREATED_AT",
    "MODIFIED_AT",
    "IS_DELETED",
    "DELETED_AT",
    "ColumnInfo",
    "EntityDescriptor",
    "describe",
    "register_entities",
    "clear_cache",
    "pluralize",
    "strip_entity_suffix",
    "table_name_for",
    "primary_key_for",
    "column_name_for",
]
