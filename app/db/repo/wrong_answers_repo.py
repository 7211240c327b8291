from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.wrong_answers import WrongAnswer


class WrongAnswersRepo:
    @staticmethod
    async def get_for_question_for_update(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
        question_id: UUID,
    ) -> WrongAnswer | None:
        stmt = (
            select(WrongAnswer)
            .where(
                WrongAnswer.user_id == user_id,
                WrongAnswer.question_set_id == question_set_id,
                WrongAnswer.question_id == question_id,
            )
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_entry(
        session: AsyncSession,
        *,
        wrong_answer_id: UUID,
        user_id: UUID,
    ) -> WrongAnswer | None:
        stmt = select(WrongAnswer).where(
            WrongAnswer.id == wrong_answer_id,
            WrongAnswer.user_id == user_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, wrong_answer: WrongAnswer) -> WrongAnswer:
        session.add(wrong_answer)
        await session.flush()
        return wrong_answer

    @staticmethod
    async def list_by_user(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID | None = None,
        limit: int = 200,
    ) -> list[WrongAnswer]:
        stmt = (
            select(WrongAnswer)
            .where(WrongAnswer.user_id == user_id)
            .order_by(WrongAnswer.created_at.desc())
            .limit(limit)
        )
        if question_set_id is not None:
            stmt = stmt.where(WrongAnswer.question_set_id == question_set_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def delete_user_entries(
        session: AsyncSession,
        *,
        user_id: UUID,
        wrong_answer_ids: Sequence[UUID],
    ) -> int:
        ids = tuple(set(wrong_answer_ids))
        if not ids:
            return 0
        stmt = (
            delete(WrongAnswer)
            .where(WrongAnswer.user_id == user_id, WrongAnswer.id.in_(ids))
            .returning(WrongAnswer.id)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))
