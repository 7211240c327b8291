from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import Integer, cast, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.user_progress import UserProgress


@dataclass(frozen=True, slots=True)
class ProgressAggregate:
    question_set_id: UUID
    answered: int
    correct: int
    total_time_spent: int


class UserProgressRepo:
    @staticmethod
    async def get_for_update(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
        question_id: UUID,
    ) -> UserProgress | None:
        stmt = (
            select(UserProgress)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.question_set_id == question_set_id,
                UserProgress.question_id == question_id,
            )
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, progress: UserProgress) -> UserProgress:
        session.add(progress)
        await session.flush()
        return progress

    @staticmethod
    async def list_for_set(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
    ) -> list[UserProgress]:
        stmt = (
            select(UserProgress)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.question_set_id == question_set_id,
            )
            .order_by(UserProgress.last_accessed.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def aggregate_by_set(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID | None = None,
    ) -> list[ProgressAggregate]:
        stmt = (
            select(
                UserProgress.question_set_id,
                func.count(UserProgress.id),
                func.coalesce(func.sum(cast(UserProgress.is_correct, Integer)), 0),
                func.coalesce(func.sum(UserProgress.time_spent), 0),
            )
            .where(UserProgress.user_id == user_id)
            .group_by(UserProgress.question_set_id)
        )
        if question_set_id is not None:
            stmt = stmt.where(UserProgress.question_set_id == question_set_id)
        result = await session.execute(stmt)
        return [
            ProgressAggregate(
                question_set_id=set_id,
                answered=int(answered),
                correct=int(correct),
                total_time_spent=int(time_spent),
            )
            for set_id, answered, correct, time_spent in result.all()
        ]

    @staticmethod
    async def delete_for_set(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
    ) -> int:
        stmt = (
            delete(UserProgress)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.question_set_id == question_set_id,
            )
            .returning(UserProgress.id)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))
