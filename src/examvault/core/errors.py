"""
Structured error types for the examvault persistence engine.

Every failure the engine reports is an :class:`VaultError` carrying a
category, a retryable flag and an :class:`ErrorContext` naming the entity,
the operation and (where known) the offending id or SQL text. Callers get
enough context to log meaningfully without parsing messages.

Manifesto:
    - **Typed hierarchy:** one class per failure kind the engine can report
    - **Explicit retry semantics:** only store/transport failures are retryable
    - **Rich context:** entity, operation, id and SQL travel with the error
    - **Error chaining:** driver exceptions are preserved as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                          VaultError                           │
        │        (category, retryable, context, cause)                  │
        ├──────────────────────────────────────────────────────────────┤
        │  NotFoundError      ConflictError       CoercionError         │
        │  (NOT_FOUND)        (CONFLICT)          (COERCION)            │
        │                                                               │
        │  ConfigurationError ValidationError     StoreError            │
        │  (CONFIG)           (VALIDATION)        (DATABASE)            │
        │                                              │                │
        │                              TransientStoreError  QueryError  │
        │                              (retryable)                      │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> err = NotFoundError("Role 7 not found").with_context(entity="Role", entity_id=7)
    >>> err.context.entity
    'Role'
    >>> err.to_dict()["category"]
    'NOT_FOUND'

Guardrails:
    ❌ DON'T: Raise bare ``Exception`` from repository code
    ✅ DO: Raise the VaultError subclass matching the failure kind

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Pass it as ``cause=`` (or go through :func:`map_store_error`)

Tags:
    error-handling, exception-hierarchy, error-context, persistence

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and log routing."""

    NOT_FOUND = "NOT_FOUND"       # Zero rows where exactly one was required
    CONFLICT = "CONFLICT"         # Uniqueness / exclusivity violated
    COERCION = "COERCION"         # Stored value cannot become its domain type
    CONFIG = "CONFIG"             # Entity type cannot be mapped
    VALIDATION = "VALIDATION"     # Caller-supplied argument out of range
    DATABASE = "DATABASE"         # Store, connection or transaction failure
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are serialized by :meth:`to_dict`, so the output
    can be passed straight to a structured logger.

    Attributes:
        entity: Entity type name (e.g. ``"MediaThumbnail"``)
        operation: Facade or compound operation (e.g. ``"update"``)
        entity_id: Offending primary-key value
        table: Table the statement targeted
        sql: Statement text (never parameter values)
        metadata: Additional key/value pairs
    """

    entity: str | None = None
    operation: str | None = None
    entity_id: Any = None
    table: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["entity", "operation", "entity_id", "table", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value if key != "entity_id" else str(value)
        if self.metadata:
            result.update(self.metadata)
        return result


class VaultError(Exception):
    """
    Base exception for every error raised by examvault.

    Subclasses set ``default_category`` and ``default_retryable``; both can
    be overridden per instance. ``with_context()`` adds metadata fluently
    and returns the same instance so it can be used inside ``raise``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> VaultError:
        """
        Add context to this error (fluent API).

        Fields already set are kept, so an inner, more precise context is
        never overwritten by the outer boundary.

        Usage:
            raise NotFoundError("Thumbnail not found").with_context(
                entity="MediaThumbnail", entity_id=thumbnail_id
            )
        """
        for key, value in kwargs.items():
            if value is None:
                continue
            if hasattr(self.context, key) and key != "metadata":
                if getattr(self.context, key) is None:
                    setattr(self.context, key, value)
            else:
                self.context.metadata.setdefault(key, value)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# LOOKUP / INVARIANT ERRORS
# =============================================================================


class NotFoundError(VaultError):
    """
    Zero rows where exactly one was required.

    Raised by ``get_by_id`` on a missing or soft-deleted row, and by
    ``update``/``soft_delete``/``hard_delete``/``promote_default`` when the
    statement matched nothing.
    """

    default_category = ErrorCategory.NOT_FOUND


class ConflictError(VaultError):
    """A uniqueness or exclusivity invariant would be (or was) violated."""

    default_category = ErrorCategory.CONFLICT


class CoercionError(VaultError):
    """A stored value cannot be converted to its domain type."""

    default_category = ErrorCategory.COERCION

    def __init__(
        self,
        message: str,
        *,
        target_type: type | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.target_type = target_type
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.target_type is not None:
            result["target_type"] = getattr(self.target_type, "__name__", str(self.target_type))
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class ConfigurationError(VaultError):
    """
    An entity type cannot be mapped.

    Missing primary key, zero persistable columns, a key that cannot be
    assigned, or a filter naming a column the descriptor does not know.
    Never retryable: the type or the call site must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class ValidationError(VaultError):
    """A caller-supplied argument is out of range (e.g. page size 0)."""

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(VaultError):
    """Failure reported by the backing store or its driver."""

    default_category = ErrorCategory.DATABASE


class TransientStoreError(StoreError):
    """
    Connection, timeout or transaction failure.

    Flagged retryable so a service layer may decide to retry; the engine
    itself never does.
    """

    default_retryable = True


class QueryError(StoreError):
    """The store rejected the statement itself (syntax, unknown table...)."""

    default_retryable = False


_QUERY_ERROR_NAMES = frozenset({"ProgrammingError", "DataError", "NotSupportedError"})


def map_store_error(exc: BaseException, **context: Any) -> VaultError:
    """Translate a DB-API driver exception into the engine's hierarchy.

    DB-API 2.0 drivers (sqlite3, aiosqlite, pyodbc) all expose the same
    exception class names, so the mapping is by name rather than by import.

    Args:
        exc: Exception raised by the driver.
        **context: Fields for :class:`ErrorContext` (entity, operation, ...).

    Returns:
        A :class:`VaultError` chained to ``exc``. If ``exc`` already is one,
        it is returned with the context merged in.
    """
    if isinstance(exc, VaultError):
        return exc.with_context(**context)

    names = {klass.__name__ for klass in type(exc).__mro__}
    message = f"{type(exc).__name__}: {exc}"
    if "IntegrityError" in names:
        error: VaultError = ConflictError(message, cause=exc)
    elif names & _QUERY_ERROR_NAMES:
        error = QueryError(message, cause=exc)
    else:
        error = TransientStoreError(message, cause=exc)
    return error.with_context(**context)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "VaultError",
    "NotFoundError",
    "ConflictError",
    "CoercionError",
    "ConfigurationError",
    "ValidationError",
    "StoreError",
    "TransientStoreError",
    "QueryError",
    "map_store_error",
]
