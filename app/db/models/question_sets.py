from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BOOLEAN, CheckConstraint, DateTime, Index, Integer, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class QuestionSet(Base):
    __tablename__ = "question_sets"
    __table_args__ = (
        CheckConstraint(
            "is_paid = false OR (price IS NOT NULL AND price > 0)",
            name="ck_question_sets_paid_has_price",
        ),
        CheckConstraint(
            "trial_questions IS NULL OR trial_questions >= 0",
            name="ck_question_sets_trial_questions_non_negative",
        ),
        Index("idx_question_sets_category", "category"),
        Index("idx_question_sets_featured", "is_featured"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    icon: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_paid: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    trial_questions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_featured: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
