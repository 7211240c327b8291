from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.user_progress import UserProgress
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.db.repo.user_progress_repo import ProgressAggregate, UserProgressRepo
from app.study.errors import StudyNotFoundError, StudyValidationError
from app.study.types import ProgressSnapshot, ProgressStats

logger = structlog.get_logger(__name__)


def build_progress_stats(aggregate: ProgressAggregate) -> ProgressStats:
    answered = aggregate.answered
    return ProgressStats(
        question_set_id=aggregate.question_set_id,
        answered=answered,
        correct=aggregate.correct,
        accuracy=round(aggregate.correct * 100 / answered, 2) if answered else 0.0,
        total_time_spent=aggregate.total_time_spent,
        average_time_spent=round(aggregate.total_time_spent / answered, 2) if answered else 0.0,
    )


def empty_progress_stats(question_set_id: UUID) -> ProgressStats:
    return build_progress_stats(
        ProgressAggregate(
            question_set_id=question_set_id,
            answered=0,
            correct=0,
            total_time_spent=0,
        )
    )


class ProgressService:
    @staticmethod
    def _apply_answer(
        progress: UserProgress,
        *,
        is_correct: bool,
        time_spent: int,
        now_utc: datetime,
    ) -> UserProgress:
        progress.is_correct = is_correct
        progress.time_spent = time_spent
        progress.last_accessed = now_utc
        progress.updated_at = now_utc
        return progress

    @staticmethod
    async def record_answer(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
        question_id: UUID,
        is_correct: bool,
        time_spent: int,
        now_utc: datetime | None = None,
    ) -> UserProgress:
        now_utc = now_utc or datetime.now(timezone.utc)
        if time_spent < 0:
            raise StudyValidationError

        question = await QuestionSetsRepo.get_question(
            session,
            question_set_id=question_set_id,
            question_id=question_id,
        )
        if question is None:
            raise StudyNotFoundError

        existing = await UserProgressRepo.get_for_update(
            session,
            user_id=user_id,
            question_set_id=question_set_id,
            question_id=question_id,
        )
        if existing is not None:
            return ProgressService._apply_answer(
                existing,
                is_correct=is_correct,
                time_spent=time_spent,
                now_utc=now_utc,
            )

        try:
            async with session.begin_nested():
                return await UserProgressRepo.create(
                    session,
                    progress=UserProgress(
                        id=uuid4(),
                        user_id=user_id,
                        question_set_id=question_set_id,
                        question_id=question_id,
                        is_correct=is_correct,
                        time_spent=time_spent,
                        last_accessed=now_utc,
                        created_at=now_utc,
                        updated_at=now_utc,
                    ),
                )
        except IntegrityError:
            # A concurrent request inserted the same answer first.
            concurrent = await UserProgressRepo.get_for_update(
                session,
                user_id=user_id,
                question_set_id=question_set_id,
                question_id=question_id,
            )
            if concurrent is None:
                raise
            return ProgressService._apply_answer(
                concurrent,
                is_correct=is_correct,
                time_spent=time_spent,
                now_utc=now_utc,
            )

    @staticmethod
    async def get_set_stats(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
    ) -> ProgressStats:
        aggregates = await UserProgressRepo.aggregate_by_set(
            session,
            user_id=user_id,
            question_set_id=question_set_id,
        )
        if not aggregates:
            return empty_progress_stats(question_set_id)
        return build_progress_stats(aggregates[0])

    @staticmethod
    async def get_all_stats(session: AsyncSession, *, user_id: UUID) -> list[ProgressStats]:
        aggregates = await UserProgressRepo.aggregate_by_set(session, user_id=user_id)
        return [build_progress_stats(aggregate) for aggregate in aggregates]

    @staticmethod
    async def get_snapshot(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
    ) -> ProgressSnapshot:
        return ProgressSnapshot(
            stats=await ProgressService.get_set_stats(
                session,
                user_id=user_id,
                question_set_id=question_set_id,
            ),
            entries=await UserProgressRepo.list_for_set(
                session,
                user_id=user_id,
                question_set_id=question_set_id,
            ),
        )

    @staticmethod
    async def reset_progress(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
    ) -> int:
        deleted = await UserProgressRepo.delete_for_set(
            session,
            user_id=user_id,
            question_set_id=question_set_id,
        )
        logger.info(
            "user_progress_reset",
            user_id=str(user_id),
            question_set_id=str(question_set_id),
            deleted=deleted,
        )
        return deleted
