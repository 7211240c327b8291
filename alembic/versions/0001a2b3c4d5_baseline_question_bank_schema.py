"""baseline_question_bank_schema

Revision ID: 0001a2b3c4d5
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001a2b3c4d5"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "question_sets",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("icon", sa.String(255), nullable=True),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("trial_questions", sa.Integer(), nullable=True),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "is_paid = false OR (price IS NOT NULL AND price > 0)",
            name="ck_question_sets_paid_has_price",
        ),
        sa.CheckConstraint(
            "trial_questions IS NULL OR trial_questions >= 0",
            name="ck_question_sets_trial_questions_non_negative",
        ),
    )
    op.create_index("idx_question_sets_category", "question_sets", ["category"])
    op.create_index("idx_question_sets_featured", "question_sets", ["is_featured"])

    op.create_table(
        "questions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("question_set_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("question_type", sa.String(16), nullable=False),
        sa.Column("options", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column(
            "correct_options",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("question_type IN ('SINGLE','MULTIPLE')", name="ck_questions_type"),
        sa.ForeignKeyConstraint(["question_set_id"], ["question_sets.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_questions_set_order", "questions", ["question_set_id", "order_index"])

    op.create_table(
        "redeem_codes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("question_set_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("validity_days", sa.Integer(), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("used_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("validity_days >= 1", name="ck_redeem_codes_validity_days_positive"),
        sa.CheckConstraint(
            "(is_used = false AND used_by IS NULL AND used_at IS NULL) "
            "OR (is_used = true AND used_by IS NOT NULL AND used_at IS NOT NULL)",
            name="ck_redeem_codes_usage_consistency",
        ),
        sa.ForeignKeyConstraint(["question_set_id"], ["question_sets.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["used_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.UniqueConstraint("code", name="uq_redeem_codes_code"),
    )
    op.create_index("idx_redeem_codes_question_set", "redeem_codes", ["question_set_id"])
    op.create_index("idx_redeem_codes_is_used", "redeem_codes", ["is_used"])
    op.create_index("idx_redeem_codes_used_by", "redeem_codes", ["used_by"])
    op.create_index("idx_redeem_codes_created_by", "redeem_codes", ["created_by"])

    op.create_table(
        "purchases",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_set_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("transaction_id", sa.String(128), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('PENDING','ACTIVE','FAILED','REFUNDED','REVOKED')",
            name="ck_purchases_status",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_purchases_amount_non_negative"),
        sa.CheckConstraint("expiry_date > purchase_date", name="ck_purchases_expiry_after_purchase"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["question_set_id"], ["question_sets.id"]),
        sa.UniqueConstraint("transaction_id", name="uq_purchases_transaction_id"),
    )
    op.create_index("idx_purchases_user", "purchases", ["user_id"])
    op.create_index("idx_purchases_question_set", "purchases", ["question_set_id"])
    op.create_index(
        "idx_purchases_user_set_status",
        "purchases",
        ["user_id", "question_set_id", "status"],
    )
    op.create_index(
        "idx_purchases_active_expiry",
        "purchases",
        ["expiry_date"],
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "user_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_set_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=False),
        sa.Column("last_accessed", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("time_spent >= 0", name="ck_user_progress_time_spent_non_negative"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["question_set_id"], ["question_sets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "user_id",
            "question_set_id",
            "question_id",
            name="uq_user_progress_user_set_question",
        ),
    )
    op.create_index("idx_user_progress_user_set", "user_progress", ["user_id", "question_set_id"])

    op.create_table(
        "wrong_answers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_set_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("question_type", sa.String(16), nullable=False),
        sa.Column("options", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column(
            "selected_options",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "correct_options",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["question_set_id"], ["question_sets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "user_id",
            "question_set_id",
            "question_id",
            name="uq_wrong_answers_user_set_question",
        ),
    )
    op.create_index("idx_wrong_answers_user_created", "wrong_answers", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_wrong_answers_user_created", table_name="wrong_answers")
    op.drop_table("wrong_answers")
    op.drop_index("idx_user_progress_user_set", table_name="user_progress")
    op.drop_table("user_progress")
    op.drop_index("idx_purchases_active_expiry", table_name="purchases")
    op.drop_index("idx_purchases_user_set_status", table_name="purchases")
    op.drop_index("idx_purchases_question_set", table_name="purchases")
    op.drop_index("idx_purchases_user", table_name="purchases")
    op.drop_table("purchases")
    op.drop_index("idx_redeem_codes_created_by", table_name="redeem_codes")
    op.drop_index("idx_redeem_codes_used_by", table_name="redeem_codes")
    op.drop_index("idx_redeem_codes_is_used", table_name="redeem_codes")
    op.drop_index("idx_redeem_codes_question_set", table_name="redeem_codes")
    op.drop_table("redeem_codes")
    op.drop_index("idx_questions_set_order", table_name="questions")
    op.drop_table("questions")
    op.drop_index("idx_question_sets_featured", table_name="question_sets")
    op.drop_index("idx_question_sets_category", table_name="question_sets")
    op.drop_table("question_sets")
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_table("users")
