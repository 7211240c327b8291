from __future__ import annotations

from sqlalchemy import CheckConstraint, UniqueConstraint

from app.db.models import (  # noqa: F401
    Purchase,
    Question,
    QuestionSet,
    RedeemCode,
    User,
    UserProgress,
    WrongAnswer,
)
from app.db.models.base import Base


def _check_names(table_name: str) -> set[str]:
    return {
        constraint.name
        for constraint in Base.metadata.tables[table_name].constraints
        if isinstance(constraint, CheckConstraint)
    }


def _unique_names(table_name: str) -> set[str]:
    return {
        constraint.name
        for constraint in Base.metadata.tables[table_name].constraints
        if isinstance(constraint, UniqueConstraint)
    }


def test_all_tables_registered() -> None:
    assert set(Base.metadata.tables) == {
        "users",
        "question_sets",
        "questions",
        "redeem_codes",
        "purchases",
        "user_progress",
        "wrong_answers",
    }


def test_redeem_code_columns_and_constraints() -> None:
    redeem_codes = Base.metadata.tables["redeem_codes"]

    assert redeem_codes.c.code.unique is True
    assert redeem_codes.c.question_set_id.nullable is True
    foreign_key = next(iter(redeem_codes.c.question_set_id.foreign_keys))
    assert foreign_key.ondelete == "SET NULL"
    assert {
        "ck_redeem_codes_validity_days_positive",
        "ck_redeem_codes_usage_consistency",
    }.issubset(_check_names("redeem_codes"))
    assert "idx_redeem_codes_used_by" in {index.name for index in redeem_codes.indexes}


def test_purchase_constraints_cover_entitlement_lookups() -> None:
    purchases = Base.metadata.tables["purchases"]

    assert purchases.c.transaction_id.unique is True
    assert {
        "ck_purchases_status",
        "ck_purchases_amount_non_negative",
        "ck_purchases_expiry_after_purchase",
    }.issubset(_check_names("purchases"))
    index_names = {index.name for index in purchases.indexes}
    assert "idx_purchases_user_set_status" in index_names
    assert "idx_purchases_active_expiry" in index_names


def test_study_tables_are_unique_per_user_and_question() -> None:
    assert "uq_user_progress_user_set_question" in _unique_names("user_progress")
    assert "ck_user_progress_time_spent_non_negative" in _check_names("user_progress")
    assert any(name and name.startswith("uq_wrong_answers") for name in _unique_names("wrong_answers"))


def test_question_set_price_rules() -> None:
    assert {
        "ck_question_sets_paid_has_price",
        "ck_question_sets_trial_questions_non_negative",
    }.issubset(_check_names("question_sets"))
