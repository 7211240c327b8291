from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from app.db.models.purchases import Purchase
from app.db.models.question_sets import QuestionSet


@dataclass(slots=True)
class AccessCheckResult:
    question_set_id: UUID
    has_access: bool
    is_paid: bool | None
    expiry_date: datetime | None = None
    remaining_days: int | None = None
    price: Decimal | None = None


@dataclass(slots=True)
class ActiveEntitlement:
    purchase: Purchase
    question_set: QuestionSet | None
    remaining_days: int


@dataclass(slots=True)
class PurchaseConfirmResult:
    purchase: Purchase
    idempotent_replay: bool
