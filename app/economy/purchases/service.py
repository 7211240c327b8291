from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.purchases import Purchase
from app.db.repo.purchases_repo import VALID_ENTITLEMENT_STATUS, PurchasesRepo
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.economy.purchases.access import compute_remaining_days
from app.economy.purchases.errors import (
    ActiveEntitlementExistsError,
    PurchaseAmountMismatchError,
    PurchaseNotFoundError,
    PurchaseStateError,
    PurchaseValidationError,
    QuestionSetNotFoundError,
    QuestionSetNotPaidError,
    TransactionIdConflictError,
)
from app.economy.purchases.grants import supersede_valid_entitlement
from app.economy.purchases.types import ActiveEntitlement, PurchaseConfirmResult

logger = structlog.get_logger(__name__)

PENDING_STATUS = "PENDING"
FAILED_STATUS = "FAILED"
REFUNDED_STATUS = "REFUNDED"
DAYS_PER_BILLING_MONTH = 30
EXTEND_MONTHS_MIN = 1
EXTEND_MONTHS_MAX = 24
PRICE_QUANTUM = Decimal("0.01")


class PurchaseService:
    @staticmethod
    async def create_purchase(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
        amount: Decimal,
        payment_method: str,
        now_utc: datetime | None = None,
    ) -> Purchase:
        now_utc = now_utc or datetime.now(timezone.utc)
        question_set = await QuestionSetsRepo.get_by_id(session, question_set_id)
        if question_set is None:
            raise QuestionSetNotFoundError
        if not question_set.is_paid or question_set.price is None:
            raise QuestionSetNotPaidError
        if amount.quantize(PRICE_QUANTUM) != question_set.price.quantize(PRICE_QUANTUM):
            raise PurchaseAmountMismatchError

        existing = await PurchasesRepo.get_valid_entitlement(
            session,
            user_id=user_id,
            question_set_id=question_set_id,
            now_utc=now_utc,
        )
        if existing is not None:
            raise ActiveEntitlementExistsError

        purchase = await PurchasesRepo.create(
            session,
            purchase=Purchase(
                id=uuid4(),
                user_id=user_id,
                question_set_id=question_set_id,
                status=PENDING_STATUS,
                amount=amount,
                payment_method=payment_method,
                transaction_id=None,
                purchase_date=now_utc,
                expiry_date=now_utc + timedelta(days=get_settings().default_entitlement_days),
                expiry_reminder_sent_at=None,
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        logger.info(
            "purchase_created",
            purchase_id=str(purchase.id),
            user_id=str(user_id),
            question_set_id=str(question_set_id),
        )
        return purchase

    @staticmethod
    async def confirm_purchase(
        session: AsyncSession,
        *,
        purchase_id: UUID,
        transaction_id: str,
        now_utc: datetime | None = None,
    ) -> PurchaseConfirmResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        purchase = await PurchasesRepo.get_by_id_for_update(session, purchase_id)
        if purchase is None:
            raise PurchaseNotFoundError

        if purchase.status == VALID_ENTITLEMENT_STATUS and purchase.transaction_id == transaction_id:
            return PurchaseConfirmResult(purchase=purchase, idempotent_replay=True)
        if purchase.status != PENDING_STATUS:
            raise PurchaseStateError

        owner = await PurchasesRepo.get_by_transaction_id(session, transaction_id)
        if owner is not None and owner.id != purchase.id:
            raise TransactionIdConflictError

        starts_from = await supersede_valid_entitlement(
            session,
            user_id=purchase.user_id,
            question_set_id=purchase.question_set_id,
            now_utc=now_utc,
        )
        purchase.status = VALID_ENTITLEMENT_STATUS
        purchase.transaction_id = transaction_id
        purchase.purchase_date = now_utc
        purchase.expiry_date = starts_from + timedelta(days=get_settings().default_entitlement_days)
        purchase.updated_at = now_utc
        await session.flush()

        logger.info(
            "purchase_confirmed",
            purchase_id=str(purchase.id),
            user_id=str(purchase.user_id),
            question_set_id=str(purchase.question_set_id),
        )
        return PurchaseConfirmResult(purchase=purchase, idempotent_replay=False)

    @staticmethod
    async def cancel_purchase(
        session: AsyncSession,
        *,
        user_id: UUID,
        purchase_id: UUID,
        now_utc: datetime | None = None,
    ) -> Purchase:
        now_utc = now_utc or datetime.now(timezone.utc)
        purchase = await PurchasesRepo.get_user_purchase_for_update(
            session,
            purchase_id=purchase_id,
            user_id=user_id,
        )
        if purchase is None:
            raise PurchaseNotFoundError
        if purchase.status != PENDING_STATUS:
            raise PurchaseStateError

        purchase.status = FAILED_STATUS
        purchase.updated_at = now_utc
        logger.info("purchase_cancelled", purchase_id=str(purchase.id), user_id=str(user_id))
        return purchase

    @staticmethod
    async def extend_purchase(
        session: AsyncSession,
        *,
        user_id: UUID,
        purchase_id: UUID,
        months: int,
        now_utc: datetime | None = None,
    ) -> Purchase:
        now_utc = now_utc or datetime.now(timezone.utc)
        if not EXTEND_MONTHS_MIN <= months <= EXTEND_MONTHS_MAX:
            raise PurchaseValidationError

        purchase = await PurchasesRepo.get_user_purchase_for_update(
            session,
            purchase_id=purchase_id,
            user_id=user_id,
        )
        if purchase is None:
            raise PurchaseNotFoundError
        if purchase.status != VALID_ENTITLEMENT_STATUS or purchase.expiry_date <= now_utc:
            raise PurchaseStateError

        purchase.expiry_date = purchase.expiry_date + timedelta(
            days=months * DAYS_PER_BILLING_MONTH
        )
        purchase.expiry_reminder_sent_at = None
        purchase.updated_at = now_utc
        logger.info(
            "purchase_extended",
            purchase_id=str(purchase.id),
            user_id=str(user_id),
            months=months,
        )
        return purchase

    @staticmethod
    async def refund_purchase(
        session: AsyncSession,
        *,
        purchase_id: UUID,
        now_utc: datetime | None = None,
    ) -> Purchase:
        now_utc = now_utc or datetime.now(timezone.utc)
        purchase = await PurchasesRepo.get_by_id_for_update(session, purchase_id)
        if purchase is None:
            raise PurchaseNotFoundError
        if purchase.status != VALID_ENTITLEMENT_STATUS:
            raise PurchaseStateError

        purchase.status = REFUNDED_STATUS
        purchase.updated_at = now_utc
        logger.info(
            "purchase_refunded",
            purchase_id=str(purchase.id),
            user_id=str(purchase.user_id),
        )
        return purchase

    @staticmethod
    async def list_purchases(session: AsyncSession, *, user_id: UUID) -> list[Purchase]:
        return await PurchasesRepo.list_by_user(session, user_id=user_id)

    @staticmethod
    async def get_purchase(
        session: AsyncSession,
        *,
        user_id: UUID,
        purchase_id: UUID,
    ) -> Purchase:
        purchase = await PurchasesRepo.get_by_id(session, purchase_id)
        if purchase is None or purchase.user_id != user_id:
            raise PurchaseNotFoundError
        return purchase

    @staticmethod
    async def list_active(
        session: AsyncSession,
        *,
        user_id: UUID,
        now_utc: datetime | None = None,
    ) -> list[ActiveEntitlement]:
        now_utc = now_utc or datetime.now(timezone.utc)
        purchases = await PurchasesRepo.list_valid_entitlements(
            session,
            user_id=user_id,
            now_utc=now_utc,
        )
        question_sets = {
            question_set.id: question_set
            for question_set in await QuestionSetsRepo.list_by_ids(
                session, [purchase.question_set_id for purchase in purchases]
            )
        }
        return [
            ActiveEntitlement(
                purchase=purchase,
                question_set=question_sets.get(purchase.question_set_id),
                remaining_days=compute_remaining_days(
                    expiry_date=purchase.expiry_date,
                    now_utc=now_utc,
                ),
            )
            for purchase in purchases
        ]
