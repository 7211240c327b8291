from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.db.models.purchases import Purchase
from app.db.models.question_sets import QuestionSet
from app.db.models.redeem_codes import RedeemCode


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionSetResponse(CamelModel):
    id: UUID
    title: str
    description: str
    category: str
    icon: str | None = None
    is_paid: bool
    price: Decimal | None = None
    trial_questions: int | None = None
    is_featured: bool
    created_at: datetime
    updated_at: datetime


class PurchaseResponse(CamelModel):
    id: UUID
    user_id: UUID
    question_set_id: UUID
    status: str
    amount: Decimal
    payment_method: str | None = None
    transaction_id: str | None = None
    purchase_date: datetime
    expiry_date: datetime
    created_at: datetime
    updated_at: datetime


class RedeemCodeResponse(CamelModel):
    id: UUID
    code: str
    question_set_id: UUID | None = None
    validity_days: int
    expiry_date: datetime
    is_used: bool
    used_by: UUID | None = None
    used_at: datetime | None = None
    created_by: UUID
    created_at: datetime


def question_set_as_response(question_set: QuestionSet) -> QuestionSetResponse:
    return QuestionSetResponse(
        id=question_set.id,
        title=question_set.title,
        description=question_set.description,
        category=question_set.category,
        icon=question_set.icon,
        is_paid=question_set.is_paid,
        price=question_set.price,
        trial_questions=question_set.trial_questions,
        is_featured=question_set.is_featured,
        created_at=question_set.created_at,
        updated_at=question_set.updated_at,
    )


def purchase_as_response(purchase: Purchase) -> PurchaseResponse:
    return PurchaseResponse(
        id=purchase.id,
        user_id=purchase.user_id,
        question_set_id=purchase.question_set_id,
        status=purchase.status,
        amount=purchase.amount,
        payment_method=purchase.payment_method,
        transaction_id=purchase.transaction_id,
        purchase_date=purchase.purchase_date,
        expiry_date=purchase.expiry_date,
        created_at=purchase.created_at,
        updated_at=purchase.updated_at,
    )


def redeem_code_as_response(redeem_code: RedeemCode) -> RedeemCodeResponse:
    return RedeemCodeResponse(
        id=redeem_code.id,
        code=redeem_code.code,
        question_set_id=redeem_code.question_set_id,
        validity_days=redeem_code.validity_days,
        expiry_date=redeem_code.expiry_date,
        is_used=redeem_code.is_used,
        used_by=redeem_code.used_by,
        used_at=redeem_code.used_at,
        created_by=redeem_code.created_by,
        created_at=redeem_code.created_at,
    )
