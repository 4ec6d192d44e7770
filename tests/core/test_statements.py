"""Tests for statement generation in both dialects."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

import pytest

from examvault.core.coercion import TypeCoercionRegistry
from examvault.core.dialect import SQLiteDialect, SQLServerDialect, get_dialect
from examvault.core.enums import ThumbnailSize
from examvault.core.errors import ConfigurationError, ValidationError
from examvault.core.models import MediaThumbnail, Role
from examvault.core.schema import describe
from examvault.core.statements import (
    Criteria,
    Fragment,
    OrderBy,
    PageBase,
    PageRequest,
    StatementBuilder,
)

MID = UUID("12345678-1234-5678-1234-567812345678")
NOW = datetime(2026, 3, 1, tzinfo=UTC)


@pytest.fixture
def sqlite_roles(registry: TypeCoercionRegistry) -> StatementBuilder:
    return StatementBuilder(describe(Role), SQLiteDialect(), registry)


@pytest.fixture
def mssql_roles(registry: TypeCoercionRegistry) -> StatementBuilder:
    return StatementBuilder(describe(Role), SQLServerDialect(), registry)


@pytest.fixture
def thumbs(registry: TypeCoercionRegistry) -> StatementBuilder:
    return StatementBuilder(describe(MediaThumbnail), SQLiteDialect(), registry)


class TestPageRequest:
    @pytest.mark.parametrize(
        ("number", "size", "base", "offset"),
        [
            (0, 20, PageBase.ZERO, 0),
            (2, 20, PageBase.ZERO, 40),
            (1, 20, PageBase.ONE, 0),
            (3, 20, PageBase.ONE, 40),
        ],
    )
    def test_offset(self, number: int, size: int, base: PageBase, offset: int) -> None:
        assert PageRequest(number, size, base).offset == offset

    def test_zero_size_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc:
            PageRequest(1, 0)
        assert exc.value.field == "size"

    def test_number_below_base_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PageRequest(0, 20, PageBase.ONE)
        with pytest.raises(ValidationError):
            PageRequest(-1, 20, PageBase.ZERO)


class TestCriteria:
    def test_and_of_leaves(self, thumbs: StatementBuilder) -> None:
        where = Criteria.eq("media_file_id", MID) & Criteria.eq("size", ThumbnailSize.SMALL)
        fragment = thumbs.render_where(where)
        assert fragment == Fragment(
            '("MediaFileId" = ?) AND ("Size" = ?)', (str(MID), 1)
        )

    def test_null_comparisons(self, thumbs: StatementBuilder) -> None:
        assert thumbs.render_where(Criteria.eq("quality", None)).sql == '"Quality" IS NULL'
        assert thumbs.render_where(Criteria.ne("quality", None)).sql == '"Quality" IS NOT NULL'
        assert thumbs.render_where(Criteria.is_null("quality")).sql == '"Quality" IS NULL'

    def test_in_and_empty_in(self, thumbs: StatementBuilder) -> None:
        fragment = thumbs.render_where(Criteria.in_("width", [64, 128]))
        assert fragment == Fragment('"Width" IN (?, ?)', (64, 128))
        assert thumbs.render_where(Criteria.in_("width", [])).sql == "1 = 0"

    def test_not_and_or(self, thumbs: StatementBuilder) -> None:
        where = ~(Criteria.gt("width", 10) | Criteria.like("format", "png%"))
        fragment = thumbs.render_where(where)
        assert fragment.sql == 'NOT (("Width" > ?) OR ("Format" LIKE ?))'
        assert fragment.params == (10, "png%")

    def test_values_never_reach_sql(self, thumbs: StatementBuilder) -> None:
        fragment = thumbs.render_where(Criteria.eq("format", "x'; DROP TABLE t; --"))
        assert "DROP" not in fragment.sql

    def test_unknown_column(self, thumbs: StatementBuilder) -> None:
        with pytest.raises(ConfigurationError):
            thumbs.render_where(Criteria.eq("nope", 1))


class TestSelects:
    def test_select_all_filters_deleted(self, sqlite_roles: StatementBuilder) -> None:
        sql, params = sqlite_roles.select_all()
        assert sql.startswith('SELECT "RoleId", ')
        assert 'WHERE "IsDeleted" = 0' in sql
        assert sql.endswith('ORDER BY "CreatedAt" DESC, "RoleId" DESC')
        assert params == ()

    def test_select_all_including_deleted(self, sqlite_roles: StatementBuilder) -> None:
        sql, _ = sqlite_roles.select_all(include_deleted=True)
        assert "IsDeleted" not in sql.split("FROM")[1]

    def test_explicit_order(self, sqlite_roles: StatementBuilder) -> None:
        sql, _ = sqlite_roles.select_all(order_by=[OrderBy.asc("code"), OrderBy.desc("name")])
        assert sql.endswith('ORDER BY "Code" ASC, "Name" DESC')

    def test_select_by_id(self, sqlite_roles: StatementBuilder) -> None:
        sql, params = sqlite_roles.select_by_id(7)
        assert sql.endswith('WHERE "RoleId" = ? AND "IsDeleted" = 0')
        assert params == (7,)

    def test_sqlite_paging(self, sqlite_roles: StatementBuilder) -> None:
        sql, params = sqlite_roles.select_paged(
            PageRequest(3, 20), Criteria.eq("code", "admin")
        )
        assert sql.endswith('ORDER BY "CreatedAt" DESC, "RoleId" DESC LIMIT ? OFFSET ?')
        assert params == ("admin", 20, 40)

    def test_sqlserver_paging(self, mssql_roles: StatementBuilder) -> None:
        sql, params = mssql_roles.select_paged(PageRequest(2, 20, PageBase.ZERO))
        assert "[IsDeleted] = 0" in sql
        assert sql.endswith(
            "ORDER BY [CreatedAt] DESC, [RoleId] DESC OFFSET ? ROWS FETCH NEXT ? ROWS ONLY"
        )
        assert params == (40, 20)

    def test_count_and_exists(self, sqlite_roles: StatementBuilder) -> None:
        assert sqlite_roles.count().sql == 'SELECT COUNT(*) FROM "Roles" WHERE "IsDeleted" = 0'
        sql, params = sqlite_roles.exists(3)
        assert sql == 'SELECT 1 FROM "Roles" WHERE "RoleId" = ? AND "IsDeleted" = 0'
        assert params == (3,)


class TestWrites:
    def test_insert_generated_key(self, sqlite_roles: StatementBuilder) -> None:
        role = Role(code="admin", name="Admin", created_at=NOW, modified_at=NOW)
        sql, params = sqlite_roles.insert(role)
        assert sql.startswith('INSERT INTO "Roles" ("CreatedAt", ')
        assert sql.endswith('RETURNING "RoleId"')
        assert '"RoleId"' not in sql.split("VALUES")[0]
        assert "admin" in params
        assert params[0] == "2026-03-01T00:00:00.000000+00:00"

    def test_insert_generated_key_sqlserver(self, mssql_roles: StatementBuilder) -> None:
        role = Role(code="admin", name="Admin")
        sql, _ = mssql_roles.insert(role)
        assert " OUTPUT INSERTED.[RoleId] VALUES (" in sql

    def test_insert_client_key(self, thumbs: StatementBuilder) -> None:
        thumb = MediaThumbnail(
            media_thumbnail_id=MID, media_file_id=MID, size=ThumbnailSize.SMALL
        )
        sql, params = thumbs.insert(thumb)
        assert "RETURNING" not in sql
        assert params[0] == str(MID)

    def test_update_forces_modified_at(self, sqlite_roles: StatementBuilder) -> None:
        role = Role(role_id=5, code="admin", name="Admin", created_at=NOW)
        sql, params = sqlite_roles.update(role, NOW)
        assert '"CreatedAt"' not in sql
        assert sql.count('"ModifiedAt" = ?') == 1
        assert '"IsDeleted" = ?' not in sql
        assert '"DeletedAt"' not in sql
        assert sql.endswith('WHERE "RoleId" = ? AND "IsDeleted" = 0')
        assert params[-2:] == ("2026-03-01T00:00:00.000000+00:00", 5)

    def test_soft_delete(self, sqlite_roles: StatementBuilder) -> None:
        sql, params = sqlite_roles.soft_delete(5, NOW)
        assert sql.startswith('UPDATE "Roles" SET "IsDeleted" = 1, "DeletedAt" = ?')
        assert params == (
            "2026-03-01T00:00:00.000000+00:00",
            "2026-03-01T00:00:00.000000+00:00",
            5,
        )

    def test_hard_delete(self, mssql_roles: StatementBuilder) -> None:
        assert mssql_roles.hard_delete(5).sql == "DELETE FROM [Roles] WHERE [RoleId] = ?"


class TestCreateTable:
    def test_sqlite(self, sqlite_roles: StatementBuilder) -> None:
        sql = sqlite_roles.create_table().sql
        assert sql.startswith('CREATE TABLE IF NOT EXISTS "Roles" ("RoleId" INTEGER NOT NULL')
        assert '"Description" TEXT NULL' in sql
        assert sql.endswith('PRIMARY KEY ("RoleId"))')

    def test_sqlserver(self, mssql_roles: StatementBuilder) -> None:
        sql = mssql_roles.create_table().sql
        assert "IF OBJECT_ID(N'Roles', N'U') IS NULL" in sql
        assert "[RoleId] BIGINT IDENTITY(1, 1) NOT NULL" in sql
        assert "[IsSystemRole] BIT NOT NULL" in sql


class TestDialects:
    def test_registry_lookup(self) -> None:
        assert get_dialect("SQLite").name == "sqlite"
        assert get_dialect("mssql").name == "sqlserver"
        with pytest.raises(ConfigurationError):
            get_dialect("oracle")

    def test_paginate(self) -> None:
        assert get_dialect("sqlite").paginate(40, 20) == (" LIMIT ? OFFSET ?", (20, 40))
        assert get_dialect("sqlserver").paginate(40, 20) == (
            " OFFSET ? ROWS FETCH NEXT ? ROWS ONLY",
            (40, 20),
        )

    def test_quoting_escapes(self) -> None:
        assert SQLiteDialect().quote('a"b') == '"a""b"'
        assert SQLServerDialect().quote("a]b") == "[a]]b]"

    def test_enum_column_types(self) -> None:
        assert SQLiteDialect().column_type(ThumbnailSize) == "INTEGER"
        assert SQLServerDialect().column_type(UUID) == "UNIQUEIDENTIFIER"
