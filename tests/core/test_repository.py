"""Tests for the synchronous generic repository facade (SQLite file store)."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import pytest
import structlog

from examvault.core.coercion import TypeCoercionRegistry
from examvault.core.connection import SQLiteConnectionProvider
from examvault.core.enums import ThumbnailSize, ThumbnailStatus
from examvault.core.errors import (
    CoercionError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    QueryError,
    TransientStoreError,
    ValidationError,
)
from examvault.core.logging import LogContext, clear_context
from examvault.core.models import MediaThumbnail, Role
from examvault.core.repository import Repository
from examvault.core.statements import Criteria, OrderBy, PageBase


class RoleRepo(Repository[Role]):
    entity_type = Role


@pytest.fixture
def roles(provider: SQLiteConnectionProvider, registry: TypeCoercionRegistry, clock) -> RoleRepo:
    return RoleRepo(provider, registry, clock=clock)


@pytest.fixture
def thumbs(
    provider: SQLiteConnectionProvider, registry: TypeCoercionRegistry, clock
) -> Repository[MediaThumbnail]:
    return Repository(provider, registry, entity_type=MediaThumbnail, clock=clock)


def new_role(code: str) -> Role:
    return Role(code=code, name=code.title())


class TestConstruction:
    def test_entity_type_required(self, provider: SQLiteConnectionProvider) -> None:
        with pytest.raises(ConfigurationError):
            Repository(provider)

    def test_page_base_override(self, provider: SQLiteConnectionProvider) -> None:
        repo = RoleRepo(provider, page_base=0)
        assert repo.page_base is PageBase.ZERO
        assert RoleRepo(provider).page_base is PageBase.ONE

    def test_page_base_from_settings(
        self, provider: SQLiteConnectionProvider, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("EXAMVAULT_PAGE_BASE", "0")
        assert RoleRepo(provider).page_base is PageBase.ZERO


class TestAdd:
    def test_generated_key_and_stamps(self, roles: RoleRepo) -> None:
        draft = new_role("admin")
        stored = roles.add(draft)
        assert stored.role_id is not None
        assert stored.created_at == stored.modified_at
        assert stored.created_at.tzinfo is not None
        assert stored.is_deleted is False
        assert draft.role_id is None  # caller's instance untouched

    def test_generated_keys_are_distinct(self, roles: RoleRepo) -> None:
        a = roles.add(new_role("a"))
        b = roles.add(new_role("b"))
        assert a.role_id != b.role_id

    def test_client_key_generated_when_missing(
        self, thumbs: Repository[MediaThumbnail]
    ) -> None:
        stored = thumbs.add(MediaThumbnail(media_file_id=uuid4(), size=ThumbnailSize.SMALL))
        assert isinstance(stored.media_thumbnail_id, UUID)
        assert thumbs.get_by_id(stored.media_thumbnail_id) == stored

    def test_client_key_is_kept(self, thumbs: Repository[MediaThumbnail]) -> None:
        key = uuid4()
        stored = thumbs.add(
            MediaThumbnail(media_thumbnail_id=key, media_file_id=uuid4(), size=ThumbnailSize.LARGE)
        )
        assert stored.media_thumbnail_id == key

    def test_duplicate_client_key_is_conflict(self, thumbs: Repository[MediaThumbnail]) -> None:
        thumb = thumbs.add(MediaThumbnail(media_file_id=uuid4(), size=ThumbnailSize.SMALL))
        with pytest.raises(ConflictError) as exc:
            thumbs.add(thumb)
        assert exc.value.context.operation == "add"
        assert exc.value.context.table == "MediaThumbnails"
        assert "INSERT" in exc.value.context.sql


class TestRead:
    def test_get_by_id_round_trip(self, thumbs: Repository[MediaThumbnail]) -> None:
        stored = thumbs.add(
            MediaThumbnail(
                media_file_id=uuid4(),
                size=ThumbnailSize.CUSTOM,
                width=300,
                height=200,
                quality=80,
                status=ThumbnailStatus.GENERATED,
            )
        )
        found = thumbs.get_by_id(stored.media_thumbnail_id)
        assert found == stored
        assert found.size is ThumbnailSize.CUSTOM
        assert found.status is ThumbnailStatus.GENERATED

    def test_get_by_id_missing(self, roles: RoleRepo) -> None:
        with pytest.raises(NotFoundError) as exc:
            roles.get_by_id(999)
        assert exc.value.context.entity == "Role"
        assert exc.value.context.entity_id == 999

    def test_get_all_newest_first(self, roles: RoleRepo) -> None:
        for code in ("a", "b", "c"):
            roles.add(new_role(code))
        assert [r.code for r in roles.get_all()] == ["c", "b", "a"]

    def test_get_all_with_criteria_and_order(self, roles: RoleRepo) -> None:
        for code in ("b", "a", "c"):
            roles.add(new_role(code))
        found = roles.get_all(Criteria.ne("code", "c"), OrderBy.asc("code"))
        assert [r.code for r in found] == ["a", "b"]

    def test_exists_and_count(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        roles.add(new_role("b"))
        assert roles.exists(role.role_id)
        assert not roles.exists(999)
        assert roles.count() == 2
        assert roles.count(Criteria.eq("code", "a")) == 1


class TestPaging:
    @pytest.fixture
    def seeded(self, roles: RoleRepo) -> RoleRepo:
        for i in range(5):
            roles.add(new_role(f"r{i}"))
        return roles

    def test_one_based(self, seeded: RoleRepo) -> None:
        page = seeded.get_paged(1, 2, order_by=OrderBy.asc("code"))
        assert [r.code for r in page] == ["r0", "r1"]
        page = seeded.get_paged(3, 2, order_by=OrderBy.asc("code"))
        assert [r.code for r in page] == ["r4"]

    def test_zero_based_per_call(self, seeded: RoleRepo) -> None:
        page = seeded.get_paged(0, 2, order_by=OrderBy.asc("code"), base=PageBase.ZERO)
        assert [r.code for r in page] == ["r0", "r1"]

    def test_past_the_end(self, seeded: RoleRepo) -> None:
        assert seeded.get_paged(10, 2) == []

    def test_invalid_page(self, seeded: RoleRepo) -> None:
        with pytest.raises(ValidationError):
            seeded.get_paged(0, 2)
        with pytest.raises(ValidationError):
            seeded.get_paged(1, 0)


class TestUpdate:
    def test_update_returns_stored_row(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        changed = roles.update(
            Role(role_id=role.role_id, code="a", name="Renamed", created_at=role.created_at)
        )
        assert changed.name == "Renamed"
        assert changed.created_at == role.created_at
        assert changed.modified_at > role.modified_at

    def test_update_cannot_move_created_at(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        forged = datetime(2000, 1, 1, tzinfo=UTC)
        changed = roles.update(
            Role(role_id=role.role_id, code="a", name="A", created_at=forged)
        )
        assert changed.created_at == role.created_at

    def test_update_missing_row(self, roles: RoleRepo) -> None:
        with pytest.raises(NotFoundError):
            roles.update(Role(role_id=999, code="x", name="X"))

    def test_update_requires_key(self, roles: RoleRepo) -> None:
        with pytest.raises(ValidationError):
            roles.update(new_role("x"))

    def test_update_soft_deleted_row(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        roles.soft_delete(role.role_id)
        with pytest.raises(NotFoundError):
            roles.update(role)

    def test_update_ignores_deleted_flag(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        changed = roles.update(dataclasses.replace(role, name="B", is_deleted=True))
        assert changed.name == "B"
        assert changed.is_deleted is False
        assert changed.deleted_at is None
        assert roles.count() == 1

    def test_update_ignores_deleted_at(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        stamp = datetime(2026, 2, 1, tzinfo=UTC)
        changed = roles.update(dataclasses.replace(role, deleted_at=stamp))
        assert changed.deleted_at is None


class TestDelete:
    def test_soft_delete_hides_row(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        roles.add(new_role("b"))
        roles.soft_delete(role.role_id)

        assert [r.code for r in roles.get_all()] == ["b"]
        assert roles.count() == 1
        assert not roles.exists(role.role_id)
        with pytest.raises(NotFoundError):
            roles.get_by_id(role.role_id)

    def test_soft_deleted_row_is_kept_and_stamped(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        roles.soft_delete(role.role_id)
        rows = roles.raw_rows(
            'SELECT "IsDeleted", "DeletedAt" FROM "Roles" WHERE "RoleId" = ?', (role.role_id,)
        )
        assert rows[0]["IsDeleted"] == 1
        assert rows[0]["DeletedAt"] is not None

    def test_soft_delete_twice(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        roles.soft_delete(role.role_id)
        with pytest.raises(NotFoundError):
            roles.soft_delete(role.role_id)

    def test_hard_delete(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        roles.hard_delete(role.role_id)
        assert roles.raw_rows('SELECT * FROM "Roles"') == []

    def test_hard_delete_removes_soft_deleted_rows(self, roles: RoleRepo) -> None:
        role = roles.add(new_role("a"))
        roles.soft_delete(role.role_id)
        roles.hard_delete(role.role_id)
        assert roles.raw_rows('SELECT * FROM "Roles"') == []

    def test_hard_delete_missing(self, roles: RoleRepo) -> None:
        with pytest.raises(NotFoundError):
            roles.hard_delete(999)


class TestPassthrough:
    def test_raw_query_hydrates(self, roles: RoleRepo) -> None:
        roles.add(new_role("a"))
        found = roles.raw_query('SELECT * FROM "Roles" WHERE "Code" = ?', ("a",))
        assert found[0].name == "A"

    def test_raw_execute_rowcount(self, roles: RoleRepo) -> None:
        roles.add(new_role("a"))
        roles.add(new_role("b"))
        assert roles.raw_execute('UPDATE "Roles" SET "Description" = ?', ("x",)) == 2

    def test_bad_sql_is_mapped(self, roles: RoleRepo) -> None:
        with pytest.raises((QueryError, TransientStoreError)) as exc:
            roles.raw_rows('SELECT * FROM "NoSuchTable"')
        assert exc.value.context.sql == 'SELECT * FROM "NoSuchTable"'
        assert exc.value.__cause__ is not None


class TestErrorContext:
    def test_coercion_error_carries_operation_and_id(
        self, thumbs: Repository[MediaThumbnail]
    ) -> None:
        thumb = thumbs.add(MediaThumbnail(media_file_id=uuid4(), size=ThumbnailSize.SMALL))
        thumbs.raw_execute(
            'UPDATE "MediaThumbnails" SET "MediaFileId" = ? WHERE "MediaThumbnailId" = ?',
            ("not-a-uuid", str(thumb.media_thumbnail_id)),
        )
        with pytest.raises(CoercionError) as exc:
            thumbs.get_by_id(thumb.media_thumbnail_id)
        assert exc.value.context.operation == "get_by_id"
        assert exc.value.context.entity_id == thumb.media_thumbnail_id
        assert exc.value.context.entity == "MediaThumbnail"
        assert exc.value.context.table == "MediaThumbnails"

    def test_not_found_keeps_its_own_context(self, roles: RoleRepo) -> None:
        with pytest.raises(NotFoundError) as exc:
            roles.update(Role(role_id=404, code="x", name="X"))
        assert exc.value.context.operation == "update"
        assert exc.value.context.entity_id == 404


class _RecordingProvider:
    """Wraps a provider and records the bound log context at each connection."""

    def __init__(self, inner: SQLiteConnectionProvider):
        self.inner = inner
        self.dialect = inner.dialect
        self.error_types = inner.error_types
        self.seen: list[dict[str, Any]] = []

    @contextmanager
    def connection(self) -> Iterator[Any]:
        self.seen.append(dict(structlog.contextvars.get_contextvars()))
        with self.inner.connection() as handle:
            yield handle


class TestLogContext:
    def test_operation_bound_during_call(
        self, provider: SQLiteConnectionProvider, registry: TypeCoercionRegistry, clock
    ) -> None:
        recording = _RecordingProvider(provider)
        repo = RoleRepo(recording, registry, clock=clock)
        role = repo.add(new_role("a"))
        repo.get_by_id(role.role_id)

        assert [s["operation"] for s in recording.seen] == ["add", "get_by_id"]
        assert all(s["entity"] == "Role" for s in recording.seen)
        assert "operation" not in structlog.contextvars.get_contextvars()

    def test_caller_context_restored(
        self, provider: SQLiteConnectionProvider, registry: TypeCoercionRegistry
    ) -> None:
        clear_context()
        with LogContext(operation="import_roles"):
            RoleRepo(provider, registry).add(new_role("a"))
            assert structlog.contextvars.get_contextvars()["operation"] == "import_roles"
        clear_context()
