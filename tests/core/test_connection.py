"""Tests for connection providers and handles."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from examvault.core.connection import (
    AsyncSQLiteConnectionProvider,
    SQLiteConnectionProvider,
    SQLServerConnectionProvider,
    build_provider,
)
from examvault.core.errors import ConfigurationError, TransientStoreError
from examvault.core.settings import VaultSettings


class TestSQLiteProvider:
    def test_handle_is_closed_after_scope(self, tmp_path: Path) -> None:
        provider = SQLiteConnectionProvider(tmp_path / "a.db")
        with provider.connection() as handle:
            raw = handle.raw
            assert handle.execute("SELECT 1").fetchone()[0] == 1
        with pytest.raises(sqlite3.ProgrammingError):
            raw.execute("SELECT 1")

    def test_open_transaction_rolled_back_on_close(self, tmp_path: Path) -> None:
        provider = SQLiteConnectionProvider(tmp_path / "a.db")
        with provider.connection() as handle:
            handle.execute('CREATE TABLE "T" ("X" INTEGER)')
        with provider.connection() as handle:
            handle.begin()
            handle.execute('INSERT INTO "T" VALUES (1)')
            assert handle.in_transaction
        with provider.connection() as handle:
            assert handle.execute('SELECT COUNT(*) FROM "T"').fetchone()[0] == 0

    def test_commit_without_transaction_is_noop(self, tmp_path: Path) -> None:
        with SQLiteConnectionProvider(tmp_path / "a.db").connection() as handle:
            handle.commit()
            handle.rollback()
            assert not handle.in_transaction

    def test_unreachable_path(self, tmp_path: Path) -> None:
        provider = SQLiteConnectionProvider(tmp_path / "missing" / "dir" / "a.db")
        with pytest.raises(TransientStoreError):
            provider.open()


class TestAsyncSQLiteProvider:
    @pytest.mark.asyncio
    async def test_transaction_commit(self, tmp_path: Path) -> None:
        provider = AsyncSQLiteConnectionProvider(tmp_path / "a.db")
        async with provider.connection() as handle:
            await handle.execute('CREATE TABLE "T" ("X" INTEGER)')
            await handle.begin()
            await handle.execute('INSERT INTO "T" VALUES (1)')
            await handle.commit()
        async with provider.connection() as handle:
            cursor = await handle.execute('SELECT COUNT(*) FROM "T"')
            assert (await cursor.fetchone())[0] == 1


class TestBuildProvider:
    def test_sqlite(self, tmp_path: Path) -> None:
        settings = VaultSettings(_env_file=None, database_path=tmp_path / "sub" / "v.db")
        provider = build_provider(settings)
        assert isinstance(provider, SQLiteConnectionProvider)
        assert (tmp_path / "sub").is_dir()
        assert isinstance(build_provider(settings, asynchronous=True), AsyncSQLiteConnectionProvider)

    def test_sqlserver_requires_dsn(self) -> None:
        with pytest.raises(ConfigurationError):
            build_provider(VaultSettings(_env_file=None, dialect="sqlserver"))

    def test_sqlserver_has_no_async_provider(self) -> None:
        settings = VaultSettings(_env_file=None, dialect="sqlserver", sqlserver_dsn="DSN=x")
        with pytest.raises(ConfigurationError):
            build_provider(settings, asynchronous=True)

    def test_sqlserver_provider_dialect(self) -> None:
        provider = SQLServerConnectionProvider("DSN=x")
        assert provider.dialect.name == "sqlserver"
        assert "DSN" not in repr(provider)
