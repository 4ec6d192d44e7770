"""Tests for the type coercion registry and its converters."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from examvault.core.coercion import (
    TypeCoercionRegistry,
    UUIDConverter,
    default_registry,
)
from examvault.core.enums import AuditCategory, ThumbnailSize, ThumbnailStatus
from examvault.core.errors import CoercionError
from examvault.core.models import MediaThumbnail
from examvault.core.schema import describe

MID = UUID("12345678-1234-5678-1234-567812345678")


class TestUUID:
    def test_text_round_trip(self, registry: TypeCoercionRegistry) -> None:
        stored = registry.to_storage(MID)
        assert stored == "12345678-1234-5678-1234-567812345678"
        assert registry.from_storage(UUID, stored) == MID

    def test_native_value_passes_through(self, registry: TypeCoercionRegistry) -> None:
        assert registry.from_storage(UUID, MID) is MID

    def test_rfc4122_blob(self, registry: TypeCoercionRegistry) -> None:
        assert registry.from_storage(UUID, MID.bytes) == MID
        assert registry.from_storage(UUID, bytearray(MID.bytes)) == MID

    def test_mixed_endian_blob(self) -> None:
        registry = default_registry(uuid_blob_order="mixed")
        assert registry.from_storage(UUID, MID.bytes_le) == MID

    def test_malformed_text(self, registry: TypeCoercionRegistry) -> None:
        with pytest.raises(CoercionError) as exc:
            registry.from_storage(UUID, "not-a-uuid")
        assert exc.value.target_type is UUID

    def test_short_blob(self, registry: TypeCoercionRegistry) -> None:
        with pytest.raises(CoercionError, match="16 bytes"):
            registry.from_storage(UUID, b"\x00" * 15)

    def test_unknown_blob_order(self) -> None:
        with pytest.raises(ValueError):
            UUIDConverter("big")  # type: ignore[arg-type]


class TestDateTime:
    def test_fixed_width_utc_text(self, registry: TypeCoercionRegistry) -> None:
        value = datetime(2026, 1, 1, tzinfo=UTC)
        assert registry.to_storage(value) == "2026-01-01T00:00:00.000000+00:00"

    def test_aware_values_are_normalised(self, registry: TypeCoercionRegistry) -> None:
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2026, 1, 1, 12, 0, tzinfo=plus_two)
        assert registry.to_storage(value) == "2026-01-01T10:00:00.000000+00:00"

    def test_text_order_is_time_order(self, registry: TypeCoercionRegistry) -> None:
        earlier = datetime(2026, 1, 1, 0, 0, 0, 999999, tzinfo=UTC)
        later = datetime(2026, 1, 1, 0, 0, 1, tzinfo=UTC)
        assert registry.to_storage(earlier) < registry.to_storage(later)

    def test_round_trip(self, registry: TypeCoercionRegistry) -> None:
        value = datetime(2026, 5, 17, 8, 30, 15, 123, tzinfo=UTC)
        assert registry.from_storage(datetime, registry.to_storage(value)) == value

    def test_malformed(self, registry: TypeCoercionRegistry) -> None:
        with pytest.raises(CoercionError):
            registry.from_storage(datetime, "yesterday")

    def test_date(self, registry: TypeCoercionRegistry) -> None:
        assert registry.to_storage(date(2026, 2, 3)) == "2026-02-03"
        assert registry.from_storage(date, "2026-02-03") == date(2026, 2, 3)


class TestScalars:
    def test_bool_flags(self, registry: TypeCoercionRegistry) -> None:
        assert registry.to_storage(True) == 1
        assert registry.to_storage(False) == 0
        assert registry.from_storage(bool, 1) is True
        assert registry.from_storage(bool, 0) is False

    def test_bool_rejects_other_integers(self, registry: TypeCoercionRegistry) -> None:
        with pytest.raises(CoercionError):
            registry.from_storage(bool, 2)

    def test_decimal(self, registry: TypeCoercionRegistry) -> None:
        assert registry.to_storage(Decimal("2.50")) == "2.50"
        assert registry.from_storage(Decimal, "2.50") == Decimal("2.50")
        with pytest.raises(CoercionError):
            registry.from_storage(Decimal, "two")

    def test_unregistered_types_pass_through(self, registry: TypeCoercionRegistry) -> None:
        assert registry.to_storage(42) == 42
        assert registry.from_storage(str, "x") == "x"

    def test_null_for_optional(self, registry: TypeCoercionRegistry) -> None:
        assert registry.from_storage(int, None, optional=True) is None

    def test_null_for_required(self, registry: TypeCoercionRegistry) -> None:
        with pytest.raises(CoercionError, match="NULL"):
            registry.from_storage(int, None)


class TestEnums:
    def test_int_enum_stored_by_value(self, registry: TypeCoercionRegistry) -> None:
        assert registry.to_storage(ThumbnailSize.MEDIUM) == 2
        assert registry.from_storage(ThumbnailSize, 3) is ThumbnailSize.LARGE

    def test_str_enum_stored_by_value(self, registry: TypeCoercionRegistry) -> None:
        assert registry.to_storage(AuditCategory.SECURITY) == "security"
        assert registry.from_storage(AuditCategory, "security") is AuditCategory.SECURITY

    def test_unknown_member(self, registry: TypeCoercionRegistry) -> None:
        with pytest.raises(CoercionError):
            registry.from_storage(ThumbnailStatus, 99)

    def test_enum_subclasses_resolve_through_mro(self, registry: TypeCoercionRegistry) -> None:
        assert ThumbnailSize in registry
        assert AuditCategory in registry


class TestRegistry:
    def test_registries_are_independent(self) -> None:
        class Upper:
            def to_storage(self, value: str) -> str:
                return value.upper()

            def from_storage(self, raw: str, target_type: type) -> str:
                return raw.lower()

        custom = default_registry().register(str, Upper())
        assert custom.to_storage("abc") == "ABC"
        assert default_registry().to_storage("abc") == "abc"


class TestHydrate:
    def _row(self) -> dict[str, object]:
        return {
            "mediathumbnailid": str(MID),
            "MEDIAFILEID": str(MID),
            "Size": 1,
            "Width": 64,
            "Height": 64,
            "Format": "webp",
            "StoragePath": "thumbs/a.webp",
            "FileSizeBytes": 1024,
            "ContentType": "image/webp",
            "Quality": None,
            "IsDefault": 1,
            "Status": 2,
            "GenerationTimeMs": None,
            "ErrorMessage": None,
            "CreatedAt": "2026-01-01T00:00:00.000000+00:00",
            "ModifiedAt": "2026-01-01T00:00:00.000000+00:00",
            "IsDeleted": 0,
            "DeletedAt": None,
        }

    def test_case_insensitive_columns(self, registry: TypeCoercionRegistry) -> None:
        thumb = registry.hydrate(describe(MediaThumbnail), self._row())
        assert thumb.media_thumbnail_id == MID
        assert thumb.size is ThumbnailSize.SMALL
        assert thumb.status is ThumbnailStatus.GENERATED
        assert thumb.is_default is True
        assert thumb.quality is None
        assert thumb.created_at == datetime(2026, 1, 1, tzinfo=UTC)

    def test_failure_names_the_column(self, registry: TypeCoercionRegistry) -> None:
        row = self._row()
        row["MediaFileId"] = "garbage"
        del row["MEDIAFILEID"]
        with pytest.raises(CoercionError) as exc:
            registry.hydrate(describe(MediaThumbnail), row)
        assert exc.value.context.metadata["column"] == "MediaFileId"
        assert exc.value.context.table == "MediaThumbnails"

    def test_missing_required_field(self, registry: TypeCoercionRegistry) -> None:
        row = self._row()
        del row["MEDIAFILEID"]
        with pytest.raises(CoercionError, match="required"):
            registry.hydrate(describe(MediaThumbnail), row)
