"""Question repository.

A question owns two independent child collections. Both are loaded by one
statement whose row count is answers x media per question; the flattening
engine keeps one seen-set per collection so neither list repeats.

Tags:
    examvault, repository, questions, answers, media, join

Doc-Types:
    api-reference
"""

from __future__ import annotations

from examvault.core.models import Answer, Question, QuestionMedia
from examvault.core.repositories._helpers import builder_for, collection
from examvault.core.repository import Repository
from examvault.core.statements import PageBase


class QuestionRepository(Repository[Question]):
    """CRUD for ``Questions``; pages are numbered from 1."""

    entity_type = Question
    page_base = PageBase.ONE

    def get_with_details(self, question_id: int) -> Question | None:
        """Question with ``answers`` and ``media`` in display order, or ``None``."""
        questions = self.statements
        answers = builder_for(Answer, self)
        media = builder_for(QuestionMedia, self)
        q = questions.q
        sql = (
            f"SELECT {questions.select_list('q')}, {answers.select_list('a')}, "
            f"{media.select_list('m')} "
            f"FROM {questions.table} q "
            f"LEFT JOIN {answers.table} a ON a.{q('QuestionId')} = q.{q('QuestionId')} "
            f"AND {answers.not_deleted('a')} "
            f"LEFT JOIN {media.table} m ON m.{q('QuestionId')} = q.{q('QuestionId')} "
            f"AND {media.not_deleted('m')} "
            f"WHERE q.{q('QuestionId')} = ? AND {questions.not_deleted('q')} "
            f"ORDER BY a.{q('SortOrder')}, a.{q('AnswerId')}, "
            f"m.{q('DisplayOrder')}, m.{q('QuestionMediaId')}"
        )
        found = self.query_joined(
            sql,
            (question_id,),
            (Question, Answer, QuestionMedia),
            collection("answers", 1, "answer_id"),
            collection("media", 2, "question_media_id"),
        )
        return found[0] if found else None

    def list_with_answers(self, question_bank_id: int) -> list[Question]:
        """Live questions of one bank, newest first, each with its answers."""
        questions = self.statements
        answers = builder_for(Answer, self)
        q = questions.q
        sql = (
            f"SELECT {questions.select_list('q')}, {answers.select_list('a')} "
            f"FROM {questions.table} q "
            f"LEFT JOIN {answers.table} a ON a.{q('QuestionId')} = q.{q('QuestionId')} "
            f"AND {answers.not_deleted('a')} "
            f"WHERE q.{q('QuestionBankId')} = ? AND {questions.not_deleted('q')} "
            f"ORDER BY q.{q('CreatedAt')} DESC, q.{q('QuestionId')} DESC, "
            f"a.{q('SortOrder')}, a.{q('AnswerId')}"
        )
        return self.query_joined(
            sql,
            (question_bank_id,),
            (Question, Answer),
            collection("answers", 1, "answer_id"),
        )
