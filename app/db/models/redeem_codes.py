from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BOOLEAN, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class RedeemCode(Base):
    __tablename__ = "redeem_codes"
    __table_args__ = (
        CheckConstraint("validity_days >= 1", name="ck_redeem_codes_validity_days_positive"),
        CheckConstraint(
            "(is_used = false AND used_by IS NULL AND used_at IS NULL) "
            "OR (is_used = true AND used_by IS NOT NULL AND used_at IS NOT NULL)",
            name="ck_redeem_codes_usage_consistency",
        ),
        Index("idx_redeem_codes_question_set", "question_set_id"),
        Index("idx_redeem_codes_is_used", "is_used"),
        Index("idx_redeem_codes_used_by", "used_by"),
        Index("idx_redeem_codes_created_by", "created_by"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    question_set_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("question_sets.id", ondelete="SET NULL"),
        nullable=True,
    )
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_used: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    used_by: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
    )
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
