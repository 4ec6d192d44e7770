"""
Shared pytest fixtures and configuration for examvault tests.

This module provides:
- File-backed SQLite providers (sync and async) under ``tmp_path``
- Schema creation for every entity table
- A fresh coercion registry per test
- A deterministic clock for stamp assertions

Usage:
    Fixtures are auto-discovered by pytest; take them as test arguments.

    def test_something(provider, registry):
        ...
"""

import sys
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Ensure examvault package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from examvault.core.coercion import TypeCoercionRegistry, default_registry
from examvault.core.connection import AsyncSQLiteConnectionProvider, SQLiteConnectionProvider
from examvault.core.models import ALL_ENTITIES
from examvault.core.schema import clear_cache, describe
from examvault.core.settings import get_settings
from examvault.core.statements import StatementBuilder
from examvault.core.transactions import unit_of_work


class StepClock:
    """Clock returning strictly increasing UTC instants, one second apart."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def create_schema(provider: SQLiteConnectionProvider, registry: TypeCoercionRegistry) -> None:
    with unit_of_work(provider) as handle:
        for entity_type in ALL_ENTITIES:
            builder = StatementBuilder(describe(entity_type), provider.dialect, registry)
            handle.execute(builder.create_table().sql)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Fresh descriptor cache and settings for every test."""
    for name in ("EXAMVAULT_DIALECT", "EXAMVAULT_DATABASE_PATH", "EXAMVAULT_PAGE_BASE"):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    get_settings.cache_clear()
    yield
    clear_cache()
    get_settings.cache_clear()


# =============================================================================
# Store fixtures
# =============================================================================


@pytest.fixture
def registry() -> TypeCoercionRegistry:
    return default_registry()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "examvault.db"


@pytest.fixture
def provider(db_path: Path, registry: TypeCoercionRegistry) -> SQLiteConnectionProvider:
    """Sync provider over a file database with every table created."""
    p = SQLiteConnectionProvider(db_path)
    create_schema(p, registry)
    return p


@pytest.fixture
def async_provider(
    provider: SQLiteConnectionProvider, db_path: Path
) -> AsyncSQLiteConnectionProvider:
    """Async provider over the same (already initialised) database file."""
    return AsyncSQLiteConnectionProvider(db_path)
