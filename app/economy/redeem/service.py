from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.core.errors import TRANSIENT_DB_ERRORS, TransientPersistenceError
from app.db.models.redeem_codes import RedeemCode
from app.db.repo.purchases_repo import PurchasesRepo
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.db.repo.redeem_codes_repo import RedeemCodesRepo
from app.economy.purchases.grants import grant_question_set_access
from app.economy.purchases.notifications import notify_access_granted
from app.economy.redeem.batch import generate_raw_codes, normalize_redeem_code
from app.economy.redeem.errors import (
    RedeemCodeAlreadyUsedError,
    RedeemCodeGenerationError,
    RedeemCodeMisconfiguredError,
    RedeemCodeNotFoundError,
    RedeemCodeValidationError,
    RedeemQuestionSetNotFoundError,
)
from app.economy.redeem.types import RedeemedCodeView, RedeemResult
from app.services.notifications import EVENT_REDEEM_SUCCESS, Notifier

logger = structlog.get_logger(__name__)

REDEEM_PAYMENT_METHOD = "REDEEM_CODE"
REDEEM_AMOUNT = Decimal("0")
VALIDITY_DAYS_MIN = 1
VALIDITY_DAYS_MAX = 3650
GENERATE_QUANTITY_MIN = 1
GENERATE_QUANTITY_MAX = 500
CODE_INSERT_MAX_ATTEMPTS = 5


def redeem_transaction_id(redeem_code_id: UUID) -> str:
    return f"redeem:{redeem_code_id}"


class RedemptionWorkflow:
    """Turns an unused redeem code into an entitlement for the redeeming user.

    Claiming the code and creating the entitlement commit together. Notifications
    go out only after the commit and never change the outcome.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier

    async def redeem(
        self,
        *,
        user_id: UUID,
        code: str,
        now_utc: datetime | None = None,
    ) -> RedeemResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        normalized_code = normalize_redeem_code(code)
        if not normalized_code:
            raise RedeemCodeNotFoundError

        try:
            async with self._session_factory.begin() as session:
                result = await self._redeem_in_session(
                    session,
                    user_id=user_id,
                    code=normalized_code,
                    now_utc=now_utc,
                )
        except TRANSIENT_DB_ERRORS as exc:
            logger.warning(
                "redeem_code_persistence_unavailable",
                user_id=str(user_id),
                error_type=type(exc).__name__,
            )
            raise TransientPersistenceError from exc

        logger.info(
            "redeem_code_redeemed",
            user_id=str(user_id),
            question_set_id=str(result.question_set.id),
            purchase_id=str(result.purchase.id),
        )
        await notify_access_granted(
            self._notifier,
            purchase=result.purchase,
            now_utc=now_utc,
            event=EVENT_REDEEM_SUCCESS,
            payload={
                "questionSetId": str(result.question_set.id),
                "questionSetTitle": result.question_set.title,
                "purchaseId": str(result.purchase.id),
                "expiryDate": result.purchase.expiry_date.isoformat(),
            },
        )
        return result

    async def _redeem_in_session(
        self,
        session: AsyncSession,
        *,
        user_id: UUID,
        code: str,
        now_utc: datetime,
    ) -> RedeemResult:
        redeem_code = await RedeemCodesRepo.get_by_code(session, code)
        if redeem_code is None:
            logger.info("redeem_code_not_found", user_id=str(user_id))
            raise RedeemCodeNotFoundError
        if redeem_code.is_used:
            logger.info(
                "redeem_code_already_used",
                user_id=str(user_id),
                redeem_code_id=str(redeem_code.id),
            )
            raise RedeemCodeAlreadyUsedError
        if redeem_code.question_set_id is None:
            logger.error("redeem_code_misconfigured", redeem_code_id=str(redeem_code.id))
            raise RedeemCodeMisconfiguredError

        question_set = await QuestionSetsRepo.get_by_id(session, redeem_code.question_set_id)
        if question_set is None:
            logger.error(
                "redeem_code_question_set_missing",
                redeem_code_id=str(redeem_code.id),
                question_set_id=str(redeem_code.question_set_id),
            )
            raise RedeemQuestionSetNotFoundError

        claimed = await RedeemCodesRepo.claim_unused(
            session,
            redeem_code_id=redeem_code.id,
            user_id=user_id,
            now_utc=now_utc,
        )
        if not claimed:
            logger.info(
                "redeem_code_claim_lost",
                user_id=str(user_id),
                redeem_code_id=str(redeem_code.id),
            )
            raise RedeemCodeAlreadyUsedError

        validity_days = redeem_code.validity_days
        if validity_days is None or validity_days <= 0:
            validity_days = get_settings().default_entitlement_days

        purchase = await grant_question_set_access(
            session,
            user_id=user_id,
            question_set_id=question_set.id,
            days=validity_days,
            amount=REDEEM_AMOUNT,
            payment_method=REDEEM_PAYMENT_METHOD,
            transaction_id=redeem_transaction_id(redeem_code.id),
            now_utc=now_utc,
        )
        return RedeemResult(question_set=question_set, purchase=purchase)


class RedeemCodeService:
    @staticmethod
    async def _insert_unique_code(
        session: AsyncSession,
        *,
        token: str,
        reserved: set[str],
        question_set_id: UUID,
        validity_days: int,
        created_by: UUID,
        now_utc: datetime,
    ) -> RedeemCode:
        candidate = token
        for attempt in range(1, CODE_INSERT_MAX_ATTEMPTS + 1):
            redeem_code = RedeemCode(
                id=uuid4(),
                code=candidate,
                question_set_id=question_set_id,
                validity_days=validity_days,
                expiry_date=now_utc + timedelta(days=validity_days),
                is_used=False,
                used_by=None,
                used_at=None,
                created_by=created_by,
                created_at=now_utc,
                updated_at=now_utc,
            )
            try:
                async with session.begin_nested():
                    await RedeemCodesRepo.create(session, redeem_code=redeem_code)
            except IntegrityError:
                logger.info("redeem_code_token_collision", attempt=attempt)
                candidate = generate_raw_codes(count=1, existing_codes=reserved)[0]
                continue
            return redeem_code

        raise RedeemCodeGenerationError

    @staticmethod
    async def generate_codes(
        session: AsyncSession,
        *,
        question_set_id: UUID,
        validity_days: int,
        quantity: int,
        created_by: UUID,
        now_utc: datetime | None = None,
    ) -> list[RedeemCode]:
        now_utc = now_utc or datetime.now(timezone.utc)
        if not VALIDITY_DAYS_MIN <= validity_days <= VALIDITY_DAYS_MAX:
            raise RedeemCodeValidationError
        if not GENERATE_QUANTITY_MIN <= quantity <= GENERATE_QUANTITY_MAX:
            raise RedeemCodeValidationError

        question_set = await QuestionSetsRepo.get_by_id(session, question_set_id)
        if question_set is None:
            raise RedeemQuestionSetNotFoundError

        reserved: set[str] = set()
        codes: list[RedeemCode] = []
        for token in generate_raw_codes(count=quantity, existing_codes=reserved):
            codes.append(
                await RedeemCodeService._insert_unique_code(
                    session,
                    token=token,
                    reserved=reserved,
                    question_set_id=question_set_id,
                    validity_days=validity_days,
                    created_by=created_by,
                    now_utc=now_utc,
                )
            )

        logger.info(
            "redeem_codes_generated",
            question_set_id=str(question_set_id),
            quantity=len(codes),
            validity_days=validity_days,
            created_by=str(created_by),
        )
        return codes

    @staticmethod
    async def list_codes(
        session: AsyncSession,
        *,
        is_used: bool | None = None,
        question_set_id: UUID | None = None,
        limit: int = 100,
    ) -> list[RedeemCode]:
        return await RedeemCodesRepo.list_codes(
            session,
            is_used=is_used,
            question_set_id=question_set_id,
            limit=limit,
        )

    @staticmethod
    async def delete_code(session: AsyncSession, *, redeem_code_id: UUID) -> None:
        redeem_code = await RedeemCodesRepo.get_by_id_for_update(session, redeem_code_id)
        if redeem_code is None:
            raise RedeemCodeNotFoundError
        if redeem_code.is_used:
            raise RedeemCodeValidationError

        await RedeemCodesRepo.delete_unused(session, redeem_code_id=redeem_code_id)
        logger.info("redeem_code_deleted", redeem_code_id=str(redeem_code_id))

    @staticmethod
    async def reassign_code(
        session: AsyncSession,
        *,
        redeem_code_id: UUID,
        question_set_id: UUID,
        now_utc: datetime | None = None,
    ) -> RedeemCode:
        now_utc = now_utc or datetime.now(timezone.utc)
        redeem_code = await RedeemCodesRepo.get_by_id_for_update(session, redeem_code_id)
        if redeem_code is None:
            raise RedeemCodeNotFoundError
        if redeem_code.is_used:
            raise RedeemCodeValidationError

        question_set = await QuestionSetsRepo.get_by_id(session, question_set_id)
        if question_set is None:
            raise RedeemQuestionSetNotFoundError

        previous_question_set_id = redeem_code.question_set_id
        redeem_code.question_set_id = question_set_id
        redeem_code.updated_at = now_utc
        logger.info(
            "redeem_code_reassigned",
            redeem_code_id=str(redeem_code_id),
            previous_question_set_id=(
                str(previous_question_set_id) if previous_question_set_id else None
            ),
            question_set_id=str(question_set_id),
        )
        return redeem_code

    @staticmethod
    async def list_codes_missing_question_set(session: AsyncSession) -> list[RedeemCode]:
        codes = await RedeemCodesRepo.list_without_question_set(session)
        if codes:
            logger.error("redeem_code_integrity_issues_found", count=len(codes))
        return codes

    @staticmethod
    async def list_user_redeemed_codes(
        session: AsyncSession,
        *,
        user_id: UUID,
    ) -> list[RedeemedCodeView]:
        codes = await RedeemCodesRepo.list_redeemed_by_user(session, user_id=user_id)
        purchases = {
            purchase.transaction_id: purchase
            for purchase in await PurchasesRepo.list_by_transaction_ids(
                session, [redeem_transaction_id(code.id) for code in codes]
            )
        }
        question_sets = {
            question_set.id: question_set
            for question_set in await QuestionSetsRepo.list_by_ids(
                session,
                [code.question_set_id for code in codes if code.question_set_id is not None],
            )
        }

        views: list[RedeemedCodeView] = []
        for code in codes:
            purchase = purchases.get(redeem_transaction_id(code.id))
            views.append(
                RedeemedCodeView(
                    redeem_code=code,
                    question_set=(
                        question_sets.get(code.question_set_id)
                        if code.question_set_id is not None
                        else None
                    ),
                    entitlement_expiry_date=purchase.expiry_date if purchase else None,
                )
            )
        return views
