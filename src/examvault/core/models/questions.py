"""Question bank models.

A :class:`Question` owns two independent collections (answers and media
attachments) that are loaded together by a single joined statement.

Tags:
    models, dataclasses, questions, answers, question-bank

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from examvault.core.enums import QuestionStatus
from examvault.core.models.base import AuditedEntity


@dataclass(kw_only=True)
class QuestionBankCategory(AuditedEntity):
    """Node of the question-bank category tree (``QuestionBankCategories``)."""

    __primary_key__ = "CategoryId"

    category_id: int | None = None
    name: str
    code: str
    description: str | None = None
    parent_id: int | None = None
    sort_order: int = 0
    tree_path: str = ""
    is_active: bool = True
    allow_questions: bool = True

    children: list[QuestionBankCategory] = field(default_factory=list)


@dataclass(kw_only=True)
class Answer(AuditedEntity):
    answer_id: int | None = None
    question_id: int
    text: str
    is_correct: bool = False
    sort_order: int = 0


@dataclass(kw_only=True)
class QuestionMedia(AuditedEntity):
    """A media file attached to a question (``QuestionMedia``)."""

    __table__ = "QuestionMedia"

    question_media_id: int | None = None
    question_id: int
    media_file_id: UUID
    media_type: str = "image"
    display_order: int = 0
    caption: str | None = None


@dataclass(kw_only=True)
class Question(AuditedEntity):
    """An authored question (``Questions``)."""

    question_id: int | None = None
    question_bank_id: int | None = None
    text: str
    question_type_id: int = 1
    difficulty_level_id: int = 1
    solution: str | None = None
    estimated_time_sec: int | None = None
    points: Decimal | None = None
    status: QuestionStatus = QuestionStatus.DRAFT
    tags: str | None = None

    answers: list[Answer] = field(default_factory=list)
    media: list[QuestionMedia] = field(default_factory=list)
