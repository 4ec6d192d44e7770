"""Media thumbnail repositories.

Within one media file and size class at most one live thumbnail carries
``IsDefault = 1``. :meth:`MediaThumbnailRepository.set_as_default` is the
only write path for the flag and runs as a single unit of work.

Tags:
    examvault, repository, media, thumbnails, exclusivity

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from examvault.core.enums import ThumbnailSize
from examvault.core.models import MediaThumbnail
from examvault.core.repository import AsyncRepository, Repository
from examvault.core.statements import Criteria, OrderBy
from examvault.core.transactions import async_promote_default, promote_default

# Columns that define one default group
DEFAULT_GROUP = ("media_file_id", "size")

_NEWEST_DEFAULT_FIRST = [OrderBy.desc("is_default"), OrderBy.desc("created_at")]


def _default_of(media_file_id: UUID, size: ThumbnailSize) -> Criteria:
    return (
        Criteria.eq("media_file_id", media_file_id)
        & Criteria.eq("size", size)
        & Criteria.eq("is_default", True)
    )


class MediaThumbnailRepository(Repository[MediaThumbnail]):
    entity_type = MediaThumbnail

    def set_as_default(self, thumbnail_id: UUID) -> None:
        """Make ``thumbnail_id`` the default of its (media file, size) group.

        Raises:
            NotFoundError: The thumbnail is missing or soft-deleted; the
                group is left untouched.
        """
        promote_default(
            self.provider,
            self.descriptor,
            thumbnail_id,
            DEFAULT_GROUP,
            registry=self.registry,
            now=self.clock(),
        )

    def get_default(self, media_file_id: UUID, size: ThumbnailSize) -> MediaThumbnail | None:
        found = self.get_all(_default_of(media_file_id, size))
        return found[0] if found else None

    def list_for_media_file(self, media_file_id: UUID) -> list[MediaThumbnail]:
        """All live thumbnails of a media file, defaults first, then newest."""
        return self.get_all(Criteria.eq("media_file_id", media_file_id), _NEWEST_DEFAULT_FIRST)


class AsyncMediaThumbnailRepository(AsyncRepository[MediaThumbnail]):
    entity_type = MediaThumbnail

    async def set_as_default(self, thumbnail_id: UUID) -> None:
        await async_promote_default(
            self.provider,
            self.descriptor,
            thumbnail_id,
            DEFAULT_GROUP,
            registry=self.registry,
            now=self.clock(),
        )

    async def get_default(
        self, media_file_id: UUID, size: ThumbnailSize
    ) -> MediaThumbnail | None:
        found: list[Any] = await self.get_all(_default_of(media_file_id, size))
        return found[0] if found else None

    async def list_for_media_file(self, media_file_id: UUID) -> list[MediaThumbnail]:
        return await self.get_all(
            Criteria.eq("media_file_id", media_file_id), _NEWEST_DEFAULT_FIRST
        )
