"""
Type coercion between domain values and their storage representation.

A :class:`TypeCoercionRegistry` maps a Python type to a converter with two
directions: ``to_storage`` (value -> driver primitive) and ``from_storage``
(driver primitive -> value). The registry is an ordinary object built once
at startup and handed to every repository; nothing registers itself
globally on import.

Manifesto:
    SQLite has no 128-bit identifier type and no datetime type. Without a
    single conversion point, every repository re-invents UUID parsing and
    timestamp formatting, and the first one that gets it wrong corrupts
    data silently. A malformed stored value is an error, never a default.

Architecture:
    ::

        registry = default_registry()

        write:  entity ──▶ registry.entity_params(descriptor, entity, cols)
                              └─ to_storage(value) per column ──▶ params

        read:   row ──▶ registry.hydrate(descriptor, {column: raw})
                              └─ from_storage(type, raw, optional) ──▶ entity

        lookup: converter_for(T)  exact type, then T.__mro__
                UUID       → UUIDConverter    text | UUID | 16-byte blob
                datetime   → DateTimeConverter ISO-8601, microseconds
                date       → DateConverter
                bool       → BoolConverter    0 / 1
                Decimal    → DecimalConverter text
                Enum       → EnumConverter    member value

Examples:
    >>> from uuid import UUID
    >>> reg = default_registry()
    >>> u = UUID("12345678-1234-5678-1234-567812345678")
    >>> reg.to_storage(u)
    '12345678-1234-5678-1234-567812345678'
    >>> reg.from_storage(UUID, u.bytes) == u
    True

Guardrails:
    ❌ DON'T: ``UUID(row[3])`` inside a repository
    ✅ DO: ``registry.from_storage(UUID, row[3])``

    ❌ DON'T: Return ``None`` for an unparseable value
    ✅ DO: Raise :class:`~examvault.core.errors.CoercionError`

Tags:
    coercion, uuid, serialization, registry, sqlite

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable
from uuid import UUID

from examvault.core.errors import CoercionError

if TYPE_CHECKING:
    from examvault.core.schema import ColumnInfo, EntityDescriptor

BlobOrder = Literal["rfc4122", "mixed"]


@runtime_checkable
class Converter(Protocol):
    """Bidirectional converter for one domain type."""

    def to_storage(self, value: Any) -> Any: ...

    def from_storage(self, raw: Any, target_type: type) -> Any: ...


# =============================================================================
# CONVERTERS
# =============================================================================


class UUIDConverter:
    """
    128-bit identifiers stored as canonical text.

    On read accepts canonical (or braced/hyphenless) text, a ``uuid.UUID``
    returned by a driver with native support, or a 16-byte blob. Blob byte
    order is RFC 4122 unless ``blob_order="mixed"``, the little-endian
    layout .NET and SQL Server clients write.
    """

    def __init__(self, blob_order: BlobOrder = "rfc4122"):
        if blob_order not in ("rfc4122", "mixed"):
            raise ValueError(f"Unknown blob order: {blob_order!r}")
        self.blob_order = blob_order

    def to_storage(self, value: UUID) -> str:
        return str(value)

    def from_storage(self, raw: Any, target_type: type = UUID) -> UUID:
        if isinstance(raw, UUID):
            return raw
        if isinstance(raw, str):
            try:
                return UUID(raw)
            except ValueError as e:
                raise CoercionError(
                    f"Malformed identifier text: {raw!r}", target_type=UUID, value=raw, cause=e
                ) from e
        if isinstance(raw, (bytes, bytearray, memoryview)):
            data = bytes(raw)
            if len(data) != 16:
                raise CoercionError(
                    f"Identifier blob must be 16 bytes, got {len(data)}",
                    target_type=UUID,
                    value=data,
                )
            if self.blob_order == "mixed":
                return UUID(bytes_le=data)
            return UUID(bytes=data)
        raise CoercionError(
            f"Cannot convert {type(raw).__name__} to UUID", target_type=UUID, value=raw
        )


class DateTimeConverter:
    """ISO-8601 text with a fixed microsecond width so text order is time order.

    Aware values are normalised to UTC before formatting.
    """

    def to_storage(self, value: datetime) -> str:
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.isoformat(timespec="microseconds")

    def from_storage(self, raw: Any, target_type: type = datetime) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            try:
                return datetime.fromisoformat(raw)
            except ValueError as e:
                raise CoercionError(
                    f"Malformed timestamp: {raw!r}", target_type=datetime, value=raw, cause=e
                ) from e
        raise CoercionError(
            f"Cannot convert {type(raw).__name__} to datetime", target_type=datetime, value=raw
        )


class DateConverter:
    def to_storage(self, value: date) -> str:
        return value.isoformat()

    def from_storage(self, raw: Any, target_type: type = date) -> date:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        if isinstance(raw, str):
            try:
                return date.fromisoformat(raw)
            except ValueError as e:
                raise CoercionError(
                    f"Malformed date: {raw!r}", target_type=date, value=raw, cause=e
                ) from e
        raise CoercionError(
            f"Cannot convert {type(raw).__name__} to date", target_type=date, value=raw
        )


class BoolConverter:
    def to_storage(self, value: bool) -> int:
        return 1 if value else 0

    def from_storage(self, raw: Any, target_type: type = bool) -> bool:
        if isinstance(raw, (bool, int)) and raw in (0, 1):
            return bool(raw)
        raise CoercionError(f"Not a boolean flag: {raw!r}", target_type=bool, value=raw)


class DecimalConverter:
    def to_storage(self, value: Decimal) -> str:
        return str(value)

    def from_storage(self, raw: Any, target_type: type = Decimal) -> Decimal:
        if isinstance(raw, Decimal):
            return raw
        try:
            return Decimal(str(raw))
        except InvalidOperation as e:
            raise CoercionError(
                f"Malformed decimal: {raw!r}", target_type=Decimal, value=raw, cause=e
            ) from e


class EnumConverter:
    """Enums are stored by member value (ints for ``IntEnum``)."""

    def to_storage(self, value: Enum) -> Any:
        return value.value

    def from_storage(self, raw: Any, target_type: type) -> Enum:
        if isinstance(raw, target_type):
            return raw
        try:
            return target_type(raw)
        except ValueError as e:
            raise CoercionError(
                f"{raw!r} is not a valid {target_type.__name__}",
                target_type=target_type,
                value=raw,
                cause=e,
            ) from e


# =============================================================================
# REGISTRY
# =============================================================================


class TypeCoercionRegistry:
    """Explicit converter registry passed to repositories and mappers."""

    def __init__(self) -> None:
        self._converters: dict[type, Converter] = {}

    def register(self, python_type: type, converter: Converter) -> TypeCoercionRegistry:
        """Register (or replace) the converter for ``python_type``."""
        self._converters[python_type] = converter
        return self

    def converter_for(self, python_type: type) -> Converter | None:
        converter = self._converters.get(python_type)
        if converter is not None:
            return converter
        for base in getattr(python_type, "__mro__", ())[1:]:
            converter = self._converters.get(base)
            if converter is not None:
                return converter
        return None

    def to_storage(self, value: Any) -> Any:
        if value is None:
            return None
        converter = self.converter_for(type(value))
        return converter.to_storage(value) if converter else value

    def from_storage(self, python_type: type, raw: Any, *, optional: bool = False) -> Any:
        """Convert a driver value back to ``python_type``.

        Raises:
            CoercionError: ``raw`` is NULL for a non-optional field, or the
                converter rejects it.
        """
        if raw is None:
            if optional:
                return None
            raise CoercionError(
                f"NULL is not a valid {python_type.__name__}", target_type=python_type
            )
        converter = self.converter_for(python_type)
        if converter is None:
            return raw
        return converter.from_storage(raw, python_type)

    # -- entity helpers ---------------------------------------------------

    def entity_params(
        self, descriptor: EntityDescriptor, entity: Any, columns: Iterable[ColumnInfo]
    ) -> tuple:
        """Storage values of ``columns`` read from ``entity``, in order."""
        return tuple(self.to_storage(getattr(entity, c.attribute)) for c in columns)

    def hydrate(self, descriptor: EntityDescriptor, values: Mapping[str, Any]) -> Any:
        """Build an entity from a ``{column: raw}`` mapping.

        Column names match case-insensitively; columns missing from
        ``values`` keep their dataclass default.
        """
        lowered = {str(k).lower(): v for k, v in values.items()}
        kwargs: dict[str, Any] = {}
        for info in descriptor.columns:
            key = info.column.lower()
            if key not in lowered:
                continue
            try:
                kwargs[info.attribute] = self.from_storage(
                    info.python_type, lowered[key], optional=info.optional
                )
            except CoercionError as e:
                raise e.with_context(
                    entity=descriptor.name, table=descriptor.table, column=info.column
                )
        try:
            return descriptor.entity_type(**kwargs)
        except TypeError as e:
            raise CoercionError(
                f"Row does not carry every required field of {descriptor.name}: {e}",
                target_type=descriptor.entity_type,
                cause=e,
            ).with_context(entity=descriptor.name, table=descriptor.table) from e

    def __contains__(self, python_type: type) -> bool:
        return self.converter_for(python_type) is not None


def default_registry(*, uuid_blob_order: BlobOrder = "rfc4122") -> TypeCoercionRegistry:
    """Registry with the converters every examvault deployment needs."""
    return (
        TypeCoercionRegistry()
        .register(UUID, UUIDConverter(uuid_blob_order))
        .register(datetime, DateTimeConverter())
        .register(date, DateConverter())
        .register(bool, BoolConverter())
        .register(Decimal, DecimalConverter())
        .register(Enum, EnumConverter())
    )


__all__ = [
    "Converter",
    "UUIDConverter",
    "DateTimeConverter",
    "DateConverter",
    "BoolConverter",
    "DecimalConverter",
    "EnumConverter",
    "TypeCoercionRegistry",
    "default_registry",
]
