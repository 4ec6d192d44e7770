"""Media thumbnail model (``MediaThumbnails``).

Thumbnails are keyed by a client-generated UUID. Within one media file and
size class at most one live thumbnail is the default.

Tags:
    models, dataclasses, media, thumbnails, uuid
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from examvault.core.enums import ThumbnailSize, ThumbnailStatus
from examvault.core.models.base import AuditedEntity


@dataclass(kw_only=True)
class MediaThumbnail(AuditedEntity):
    media_thumbnail_id: UUID | None = None
    media_file_id: UUID
    size: ThumbnailSize
    width: int = 0
    height: int = 0
    format: str = "webp"
    storage_path: str = ""
    file_size_bytes: int = 0
    content_type: str = "image/webp"
    quality: int | None = None
    is_default: bool = False
    status: ThumbnailStatus = ThumbnailStatus.GENERATING
    generation_time_ms: int | None = None
    error_message: str | None = None
