from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.purchases import Purchase
from app.db.repo.purchases_repo import VALID_ENTITLEMENT_STATUS, PurchasesRepo
from app.db.repo.users_repo import UsersRepo

logger = structlog.get_logger(__name__)

SUPERSEDED_ENTITLEMENT_STATUS = "REVOKED"


async def supersede_valid_entitlement(
    session: AsyncSession,
    *,
    user_id: UUID,
    question_set_id: UUID,
    now_utc: datetime,
) -> datetime:
    """Revoke the user's currently valid entitlement and return when the next one should start."""
    # NO KEY UPDATE on the user row serializes grants without conflicting with FK key-share locks.
    await UsersRepo.get_by_id_for_update(session, user_id)
    current = await PurchasesRepo.get_valid_entitlement(
        session,
        user_id=user_id,
        question_set_id=question_set_id,
        now_utc=now_utc,
        for_update=True,
    )
    if current is None:
        return now_utc

    current.status = SUPERSEDED_ENTITLEMENT_STATUS
    current.updated_at = now_utc
    logger.info(
        "entitlement_superseded",
        purchase_id=str(current.id),
        user_id=str(user_id),
        question_set_id=str(question_set_id),
    )
    return max(current.expiry_date, now_utc)


async def grant_question_set_access(
    session: AsyncSession,
    *,
    user_id: UUID,
    question_set_id: UUID,
    days: int,
    amount: Decimal,
    payment_method: str,
    transaction_id: str,
    now_utc: datetime,
) -> Purchase:
    starts_from = await supersede_valid_entitlement(
        session,
        user_id=user_id,
        question_set_id=question_set_id,
        now_utc=now_utc,
    )
    return await PurchasesRepo.create(
        session,
        purchase=Purchase(
            id=uuid4(),
            user_id=user_id,
            question_set_id=question_set_id,
            status=VALID_ENTITLEMENT_STATUS,
            amount=amount,
            payment_method=payment_method,
            transaction_id=transaction_id,
            purchase_date=now_utc,
            expiry_date=starts_from + timedelta(days=days),
            expiry_reminder_sent_at=None,
            created_at=now_utc,
            updated_at=now_utc,
        ),
    )
