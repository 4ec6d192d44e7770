"""Entity models mapped by the persistence engine.

Every model is a ``@dataclass(kw_only=True)`` subclass of
:class:`AuditedEntity`. Scalar fields become columns; list and entity
fields are navigation collections filled by joined queries.

Tags:
    models, dataclasses, schema-mapping

Doc-Types:
    api-reference, data-model
"""

from examvault.core.models.audit import AuditLog
from examvault.core.models.base import AuditedEntity
from examvault.core.models.media import MediaThumbnail
from examvault.core.models.questions import Answer, Question, QuestionBankCategory, QuestionMedia
from examvault.core.models.users import Role, User, UserRole

ALL_ENTITIES: tuple[type, ...] = (
    Role,
    User,
    UserRole,
    QuestionBankCategory,
    Question,
    Answer,
    QuestionMedia,
    MediaThumbnail,
    AuditLog,
)

__all__ = [
    "AuditedEntity",
    "Role",
    "User",
    "UserRole",
    "QuestionBankCategory",
    "Question",
    "Answer",
    "QuestionMedia",
    "MediaThumbnail",
    "AuditLog",
    "ALL_ENTITIES",
]
