from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.question_sets import QuestionSet
from app.db.repo.purchases_repo import PurchasesRepo
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.economy.purchases.errors import QuestionSetNotFoundError
from app.economy.purchases.types import AccessCheckResult

SECONDS_PER_DAY = 86_400
ACCESS_CHECK_BATCH_MAX = 100


def compute_remaining_days(*, expiry_date: datetime, now_utc: datetime) -> int:
    seconds_left = (expiry_date - now_utc).total_seconds()
    return max(1, math.ceil(seconds_left / SECONDS_PER_DAY))


class AccessService:
    @staticmethod
    async def _check_loaded_set(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set: QuestionSet,
        now_utc: datetime,
    ) -> AccessCheckResult:
        if not question_set.is_paid:
            return AccessCheckResult(
                question_set_id=question_set.id,
                has_access=True,
                is_paid=False,
            )

        entitlement = await PurchasesRepo.get_valid_entitlement(
            session,
            user_id=user_id,
            question_set_id=question_set.id,
            now_utc=now_utc,
        )
        if entitlement is None:
            return AccessCheckResult(
                question_set_id=question_set.id,
                has_access=False,
                is_paid=True,
                price=question_set.price,
            )

        return AccessCheckResult(
            question_set_id=question_set.id,
            has_access=True,
            is_paid=True,
            expiry_date=entitlement.expiry_date,
            remaining_days=compute_remaining_days(
                expiry_date=entitlement.expiry_date,
                now_utc=now_utc,
            ),
        )

    @staticmethod
    async def check_access(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
        now_utc: datetime | None = None,
    ) -> AccessCheckResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        question_set = await QuestionSetsRepo.get_by_id(session, question_set_id)
        if question_set is None:
            raise QuestionSetNotFoundError

        return await AccessService._check_loaded_set(
            session,
            user_id=user_id,
            question_set=question_set,
            now_utc=now_utc,
        )

    @staticmethod
    async def check_access_batch(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_ids: Sequence[UUID],
        now_utc: datetime | None = None,
    ) -> list[AccessCheckResult]:
        now_utc = now_utc or datetime.now(timezone.utc)
        requested = list(dict.fromkeys(question_set_ids))
        question_sets = {
            question_set.id: question_set
            for question_set in await QuestionSetsRepo.list_by_ids(session, requested)
        }
        paid_ids = [
            question_set.id for question_set in question_sets.values() if question_set.is_paid
        ]
        entitlements = {}
        if paid_ids:
            # Latest expiry first, so the first row seen per set wins.
            for purchase in await PurchasesRepo.list_valid_entitlements(
                session,
                user_id=user_id,
                now_utc=now_utc,
                question_set_ids=paid_ids,
            ):
                entitlements.setdefault(purchase.question_set_id, purchase)

        results: list[AccessCheckResult] = []
        for question_set_id in requested:
            question_set = question_sets.get(question_set_id)
            if question_set is None:
                results.append(
                    AccessCheckResult(
                        question_set_id=question_set_id,
                        has_access=False,
                        is_paid=None,
                    )
                )
                continue
            if not question_set.is_paid:
                results.append(
                    AccessCheckResult(
                        question_set_id=question_set_id,
                        has_access=True,
                        is_paid=False,
                    )
                )
                continue

            entitlement = entitlements.get(question_set_id)
            if entitlement is None:
                results.append(
                    AccessCheckResult(
                        question_set_id=question_set_id,
                        has_access=False,
                        is_paid=True,
                        price=question_set.price,
                    )
                )
                continue
            results.append(
                AccessCheckResult(
                    question_set_id=question_set_id,
                    has_access=True,
                    is_paid=True,
                    expiry_date=entitlement.expiry_date,
                    remaining_days=compute_remaining_days(
                        expiry_date=entitlement.expiry_date,
                        now_utc=now_utc,
                    ),
                )
            )
        return results

    @staticmethod
    async def has_access(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set: QuestionSet,
        now_utc: datetime | None = None,
    ) -> bool:
        result = await AccessService._check_loaded_set(
            session,
            user_id=user_id,
            question_set=question_set,
            now_utc=now_utc or datetime.now(timezone.utc),
        )
        return result.has_access
