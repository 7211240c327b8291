from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog.errors import CatalogQuestionSetNotFoundError, CatalogValidationError
from app.catalog.types import QuestionListing, QuestionSetDetails
from app.db.models.question_sets import QuestionSet
from app.db.models.questions import Question
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.economy.purchases.access import AccessService

logger = structlog.get_logger(__name__)

QUESTION_TYPES = ("SINGLE", "MULTIPLE")


def _validate_question_payload(
    *,
    question_type: str,
    options: Sequence[dict[str, object]],
    correct_options: Sequence[str],
) -> None:
    if question_type not in QUESTION_TYPES:
        raise CatalogValidationError
    option_ids = [str(option.get("id", "")) for option in options]
    if len(option_ids) < 2 or len(set(option_ids)) != len(option_ids) or "" in option_ids:
        raise CatalogValidationError
    if not correct_options or not set(correct_options).issubset(option_ids):
        raise CatalogValidationError
    if question_type == "SINGLE" and len(correct_options) != 1:
        raise CatalogValidationError


class CatalogService:
    @staticmethod
    async def list_question_sets(
        session: AsyncSession,
        *,
        category: str | None = None,
        featured_only: bool = False,
        limit: int = 100,
    ) -> list[QuestionSet]:
        return await QuestionSetsRepo.list_sets(
            session,
            category=category,
            featured_only=featured_only,
            limit=limit,
        )

    @staticmethod
    async def get_question_set(
        session: AsyncSession,
        *,
        question_set_id: UUID,
    ) -> QuestionSetDetails:
        question_set = await QuestionSetsRepo.get_by_id(session, question_set_id)
        if question_set is None:
            raise CatalogQuestionSetNotFoundError
        return QuestionSetDetails(
            question_set=question_set,
            question_count=await QuestionSetsRepo.count_questions(session, question_set_id),
        )

    @staticmethod
    async def list_questions(
        session: AsyncSession,
        *,
        user_id: UUID,
        question_set_id: UUID,
        now_utc: datetime | None = None,
    ) -> QuestionListing:
        question_set = await QuestionSetsRepo.get_by_id(session, question_set_id)
        if question_set is None:
            raise CatalogQuestionSetNotFoundError

        has_access = await AccessService.has_access(
            session,
            user_id=user_id,
            question_set=question_set,
            now_utc=now_utc,
        )
        if has_access:
            questions = await QuestionSetsRepo.list_questions(session, question_set_id)
        else:
            questions = await QuestionSetsRepo.list_questions(
                session,
                question_set_id,
                limit=max(question_set.trial_questions or 0, 0),
            )
        return QuestionListing(
            question_set=question_set,
            questions=questions,
            has_access=has_access,
            trial_only=not has_access,
        )

    @staticmethod
    async def create_question_set(
        session: AsyncSession,
        *,
        title: str,
        description: str,
        category: str,
        icon: str | None,
        is_paid: bool,
        price: Decimal | None,
        trial_questions: int | None,
        is_featured: bool,
        now_utc: datetime | None = None,
    ) -> QuestionSet:
        now_utc = now_utc or datetime.now(timezone.utc)
        if is_paid and (price is None or price <= 0):
            raise CatalogValidationError
        if trial_questions is not None and trial_questions < 0:
            raise CatalogValidationError

        question_set = await QuestionSetsRepo.create(
            session,
            question_set=QuestionSet(
                id=uuid4(),
                title=title.strip(),
                description=description,
                category=category.strip(),
                icon=icon,
                is_paid=is_paid,
                price=price if is_paid else None,
                trial_questions=trial_questions,
                is_featured=is_featured,
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        logger.info(
            "question_set_created",
            question_set_id=str(question_set.id),
            is_paid=is_paid,
        )
        return question_set

    @staticmethod
    async def add_question(
        session: AsyncSession,
        *,
        question_set_id: UUID,
        question_text: str,
        question_type: str,
        options: Sequence[dict[str, object]],
        correct_options: Sequence[str],
        explanation: str | None,
        now_utc: datetime | None = None,
    ) -> Question:
        now_utc = now_utc or datetime.now(timezone.utc)
        question_set = await QuestionSetsRepo.get_by_id(session, question_set_id)
        if question_set is None:
            raise CatalogQuestionSetNotFoundError
        _validate_question_payload(
            question_type=question_type,
            options=options,
            correct_options=correct_options,
        )

        question = await QuestionSetsRepo.create_question(
            session,
            question=Question(
                id=uuid4(),
                question_set_id=question_set_id,
                question_text=question_text,
                question_type=question_type,
                options=[dict(option) for option in options],
                correct_options=list(correct_options),
                explanation=explanation,
                order_index=await QuestionSetsRepo.next_order_index(session, question_set_id),
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        question_set.updated_at = now_utc
        return question
