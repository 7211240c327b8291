from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.db.models.purchases import Purchase
from app.db.models.question_sets import QuestionSet
from app.db.models.redeem_codes import RedeemCode


@dataclass(slots=True)
class RedeemResult:
    question_set: QuestionSet
    purchase: Purchase


@dataclass(slots=True)
class RedeemedCodeView:
    redeem_code: RedeemCode
    question_set: QuestionSet | None
    entitlement_expiry_date: datetime | None
