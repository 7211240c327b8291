from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.purchases import Purchase

VALID_ENTITLEMENT_STATUS = "ACTIVE"


class PurchasesRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, purchase_id: UUID) -> Purchase | None:
        return await session.get(Purchase, purchase_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, purchase_id: UUID) -> Purchase | None:
        stmt = select(Purchase).where(Purchase.id == purchase_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_purchase_for_update(
        session: AsyncSession,
        *,
        purchase_id: UUID,
        user_id: UUID,
    ) -> Purchase | None:
        stmt = (
            select(Purchase)
            .where(Purchase.id == purchase_id, Purchase.user_id == user_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_transaction_id(session: AsyncSession, transaction_id: str) -> Purchase | None:
        stmt = select(Purchase).where(Purchase.transaction_id == transaction_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_by_transaction_ids(
        session: AsyncSession,
        transaction_ids: Sequence[str],
    ) -> list[Purchase]:
        ids = tuple(set(transaction_ids))
        if not ids:
            return []
        stmt = select(Purchase).where(Purchase.transaction_id.in_(ids))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_valid_entitlement(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
        now_utc: datetime,
        for_update: bool = False,
    ) -> Purchase | None:
        stmt = (
            select(Purchase)
            .where(
                Purchase.user_id == user_id,
                Purchase.question_set_id == question_set_id,
                Purchase.status == VALID_ENTITLEMENT_STATUS,
                Purchase.expiry_date > now_utc,
            )
            .order_by(Purchase.expiry_date.desc())
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_valid_entitlements(
        session: AsyncSession,
        *,
        user_id: UUID,
        now_utc: datetime,
        question_set_ids: Sequence[UUID] | None = None,
    ) -> list[Purchase]:
        stmt = (
            select(Purchase)
            .where(
                Purchase.user_id == user_id,
                Purchase.status == VALID_ENTITLEMENT_STATUS,
                Purchase.expiry_date > now_utc,
            )
            .order_by(Purchase.expiry_date.desc())
        )
        if question_set_ids is not None:
            stmt = stmt.where(Purchase.question_set_id.in_(tuple(set(question_set_ids))))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_by_user(session: AsyncSession, *, user_id: UUID, limit: int = 200) -> list[Purchase]:
        stmt = (
            select(Purchase)
            .where(Purchase.user_id == user_id)
            .order_by(Purchase.purchase_date.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_expiring_without_reminder_for_update(
        session: AsyncSession,
        *,
        now_utc: datetime,
        until_utc: datetime,
        limit: int = 500,
    ) -> list[Purchase]:
        stmt = (
            select(Purchase)
            .where(
                Purchase.status == VALID_ENTITLEMENT_STATUS,
                Purchase.expiry_date > now_utc,
                Purchase.expiry_date <= until_utc,
                Purchase.expiry_reminder_sent_at.is_(None),
            )
            .order_by(Purchase.expiry_date.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(session: AsyncSession, *, purchase: Purchase) -> Purchase:
        session.add(purchase)
        await session.flush()
        return purchase
