from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.question_sets import QuestionSet
from app.db.models.redeem_codes import RedeemCode


class RedeemCodesRepo:
    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> RedeemCode | None:
        stmt = select(RedeemCode).where(RedeemCode.code == code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(session: AsyncSession, redeem_code_id: UUID) -> RedeemCode | None:
        return await session.get(RedeemCode, redeem_code_id)

    @staticmethod
    async def get_by_id_for_update(
        session: AsyncSession,
        redeem_code_id: UUID,
    ) -> RedeemCode | None:
        stmt = select(RedeemCode).where(RedeemCode.id == redeem_code_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, redeem_code: RedeemCode) -> RedeemCode:
        session.add(redeem_code)
        await session.flush()
        return redeem_code

    @staticmethod
    async def claim_unused(
        session: AsyncSession,
        *,
        redeem_code_id: UUID,
        user_id: UUID,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(RedeemCode)
            .where(
                RedeemCode.id == redeem_code_id,
                RedeemCode.is_used.is_(False),
            )
            .values(is_used=True, used_by=user_id, used_at=now_utc, updated_at=now_utc)
            .returning(RedeemCode.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_codes(
        session: AsyncSession,
        *,
        is_used: bool | None = None,
        question_set_id: UUID | None = None,
        limit: int = 100,
    ) -> list[RedeemCode]:
        stmt = (
            select(RedeemCode)
            .order_by(RedeemCode.created_at.desc(), RedeemCode.code.asc())
            .limit(limit)
        )
        if is_used is not None:
            stmt = stmt.where(RedeemCode.is_used.is_(is_used))
        if question_set_id is not None:
            stmt = stmt.where(RedeemCode.question_set_id == question_set_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_redeemed_by_user(session: AsyncSession, *, user_id: UUID) -> list[RedeemCode]:
        stmt = (
            select(RedeemCode)
            .where(RedeemCode.used_by == user_id, RedeemCode.is_used.is_(True))
            .order_by(RedeemCode.used_at.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_without_question_set(
        session: AsyncSession,
        *,
        limit: int = 500,
    ) -> list[RedeemCode]:
        stmt = (
            select(RedeemCode)
            .outerjoin(QuestionSet, QuestionSet.id == RedeemCode.question_set_id)
            .where(QuestionSet.id.is_(None))
            .order_by(RedeemCode.created_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def delete_unused(session: AsyncSession, *, redeem_code_id: UUID) -> int:
        stmt = (
            delete(RedeemCode)
            .where(RedeemCode.id == redeem_code_id, RedeemCode.is_used.is_(False))
            .returning(RedeemCode.id)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))
