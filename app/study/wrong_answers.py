from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.wrong_answers import WrongAnswer
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.db.repo.wrong_answers_repo import WrongAnswersRepo
from app.study.errors import StudyNotFoundError, StudyValidationError

logger = structlog.get_logger(__name__)

BULK_DELETE_MAX = 200


class WrongAnswerService:
    @staticmethod
    async def save(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
        question_id: UUID,
        selected_options: Sequence[str],
        memo: str | None = None,
        now_utc: datetime | None = None,
    ) -> WrongAnswer:
        """Record or refresh the user's wrong answer, snapshotting the question as it is now."""
        now_utc = now_utc or datetime.now(timezone.utc)
        question = await QuestionSetsRepo.get_question(
            session,
            question_set_id=question_set_id,
            question_id=question_id,
        )
        if question is None:
            raise StudyNotFoundError

        existing = await WrongAnswersRepo.get_for_question_for_update(
            session,
            user_id=user_id,
            question_set_id=question_set_id,
            question_id=question_id,
        )
        if existing is not None:
            existing.question = question.question_text
            existing.question_type = question.question_type
            existing.options = list(question.options)
            existing.selected_options = list(selected_options)
            existing.correct_options = list(question.correct_options)
            existing.explanation = question.explanation
            if memo is not None:
                existing.memo = memo
            existing.updated_at = now_utc
            return existing

        return await WrongAnswersRepo.create(
            session,
            wrong_answer=WrongAnswer(
                id=uuid4(),
                user_id=user_id,
                question_set_id=question_set_id,
                question_id=question_id,
                question=question.question_text,
                question_type=question.question_type,
                options=list(question.options),
                selected_options=list(selected_options),
                correct_options=list(question.correct_options),
                explanation=question.explanation,
                memo=memo,
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )

    @staticmethod
    async def list_entries(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID | None = None,
    ) -> list[WrongAnswer]:
        return await WrongAnswersRepo.list_by_user(
            session,
            user_id=user_id,
            question_set_id=question_set_id,
        )

    @staticmethod
    async def get_entry(
        session: AsyncSession,
        *,
        user_id: UUID,
        wrong_answer_id: UUID,
    ) -> WrongAnswer:
        entry = await WrongAnswersRepo.get_user_entry(
            session,
            wrong_answer_id=wrong_answer_id,
            user_id=user_id,
        )
        if entry is None:
            raise StudyNotFoundError
        return entry

    @staticmethod
    async def update_memo(
        session: AsyncSession,
        *,
        user_id: UUID,
        wrong_answer_id: UUID,
        memo: str | None,
        now_utc: datetime | None = None,
    ) -> WrongAnswer:
        entry = await WrongAnswerService.get_entry(
            session,
            user_id=user_id,
            wrong_answer_id=wrong_answer_id,
        )
        entry.memo = memo
        entry.updated_at = now_utc or datetime.now(timezone.utc)
        return entry

    @staticmethod
    async def mark_mastered(
        session: AsyncSession,
        *,
        user_id: UUID,
        wrong_answer_id: UUID,
    ) -> None:
        deleted = await WrongAnswersRepo.delete_user_entries(
            session,
            user_id=user_id,
            wrong_answer_ids=[wrong_answer_id],
        )
        if deleted == 0:
            raise StudyNotFoundError
        logger.info(
            "wrong_answer_mastered",
            user_id=str(user_id),
            wrong_answer_id=str(wrong_answer_id),
        )

    @staticmethod
    async def bulk_delete(
        session: AsyncSession,
        *,
        user_id: UUID,
        wrong_answer_ids: Sequence[UUID],
    ) -> int:
        if not wrong_answer_ids or len(wrong_answer_ids) > BULK_DELETE_MAX:
            raise StudyValidationError
        return await WrongAnswersRepo.delete_user_entries(
            session,
            user_id=user_id,
            wrong_answer_ids=wrong_answer_ids,
        )
