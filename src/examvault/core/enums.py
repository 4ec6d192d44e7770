"""
Domain enums for examvault entities.

Integer enums are stored by value in INT columns; string enums in text
columns. Values match the ones the authoring platform already persists.
"""

from enum import Enum, IntEnum


class ThumbnailSize(IntEnum):
    """Size class of a generated thumbnail; one default per (media file, size)."""

    SMALL = 1
    MEDIUM = 2
    LARGE = 3
    EXTRA_LARGE = 4
    CUSTOM = 5


class ThumbnailStatus(IntEnum):
    GENERATING = 1
    GENERATED = 2
    FAILED = 3
    DELETED = 4


class QuestionStatus(IntEnum):
    """Review lifecycle of a question."""

    DRAFT = 1
    IN_REVIEW = 2
    APPROVED = 3
    PUBLISHED = 4
    RETIRED = 5


class AuditSeverity(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class AuditCategory(str, Enum):
    """Functional area an audit entry belongs to."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    USER_MANAGEMENT = "user_management"
    DATA_ACCESS = "data_access"
    CONTENT = "content"
    CONFIGURATION = "configuration"
    SECURITY = "security"
    SYSTEM = "system"


__all__ = [
    "ThumbnailSize",
    "ThumbnailStatus",
    "QuestionStatus",
    "AuditSeverity",
    "AuditCategory",
]
