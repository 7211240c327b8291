from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.question_sets import QuestionSet
from app.db.models.questions import Question


class QuestionSetsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, question_set_id: UUID) -> QuestionSet | None:
        return await session.get(QuestionSet, question_set_id)

    @staticmethod
    async def list_by_ids(
        session: AsyncSession,
        question_set_ids: Sequence[UUID],
    ) -> list[QuestionSet]:
        ids = tuple(set(question_set_ids))
        if not ids:
            return []
        stmt = select(QuestionSet).where(QuestionSet.id.in_(ids))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_sets(
        session: AsyncSession,
        *,
        category: str | None = None,
        featured_only: bool = False,
        limit: int = 100,
    ) -> list[QuestionSet]:
        stmt = select(QuestionSet).order_by(QuestionSet.created_at.desc()).limit(limit)
        if category:
            stmt = stmt.where(QuestionSet.category == category)
        if featured_only:
            stmt = stmt.where(QuestionSet.is_featured.is_(True))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(session: AsyncSession, *, question_set: QuestionSet) -> QuestionSet:
        session.add(question_set)
        await session.flush()
        return question_set

    @staticmethod
    async def count_questions(session: AsyncSession, question_set_id: UUID) -> int:
        stmt = select(func.count(Question.id)).where(Question.question_set_id == question_set_id)
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def list_questions(
        session: AsyncSession,
        question_set_id: UUID,
        *,
        limit: int | None = None,
    ) -> list[Question]:
        stmt = (
            select(Question)
            .where(Question.question_set_id == question_set_id)
            .order_by(Question.order_index.asc(), Question.created_at.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_question(
        session: AsyncSession,
        *,
        question_set_id: UUID,
        question_id: UUID,
    ) -> Question | None:
        stmt = select(Question).where(
            Question.id == question_id,
            Question.question_set_id == question_set_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def next_order_index(session: AsyncSession, question_set_id: UUID) -> int:
        stmt = select(func.max(Question.order_index)).where(
            Question.question_set_id == question_set_id
        )
        result = await session.execute(stmt)
        current = result.scalar_one_or_none()
        return 0 if current is None else int(current) + 1

    @staticmethod
    async def create_question(session: AsyncSession, *, question: Question) -> Question:
        session.add(question)
        await session.flush()
        return question
