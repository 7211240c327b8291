from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.catalog.errors import CatalogQuestionSetNotFoundError, CatalogValidationError
from app.catalog.service import CatalogService
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.economy.purchases.access import AccessService
from tests.helpers import NOW_UTC, DummySession, make_question_set


def _patch_set(monkeypatch, question_set) -> None:
    async def _get_by_id(session, question_set_id):
        return question_set

    monkeypatch.setattr(QuestionSetsRepo, "get_by_id", _get_by_id)


def _patch_access(monkeypatch, *, granted: bool) -> None:
    async def _has_access(session, *, user_id, question_set, now_utc=None):
        return granted

    monkeypatch.setattr(AccessService, "has_access", _has_access)


@pytest.mark.asyncio
async def test_list_questions_returns_full_set_with_access(monkeypatch) -> None:
    question_set = make_question_set(trial_questions=2)
    calls: list[int | None] = []
    _patch_set(monkeypatch, question_set)
    _patch_access(monkeypatch, granted=True)

    async def _list_questions(session, question_set_id, *, limit=None):
        calls.append(limit)
        return [SimpleNamespace(id=uuid4()) for _ in range(5)]

    monkeypatch.setattr(QuestionSetsRepo, "list_questions", _list_questions)

    listing = await CatalogService.list_questions(
        DummySession(),
        user_id=uuid4(),
        question_set_id=question_set.id,
        now_utc=NOW_UTC,
    )

    assert calls == [None]
    assert listing.has_access is True
    assert listing.trial_only is False
    assert len(listing.questions) == 5


@pytest.mark.asyncio
async def test_list_questions_limits_to_trial_without_access(monkeypatch) -> None:
    question_set = make_question_set(trial_questions=2)
    calls: list[int | None] = []
    _patch_set(monkeypatch, question_set)
    _patch_access(monkeypatch, granted=False)

    async def _list_questions(session, question_set_id, *, limit=None):
        calls.append(limit)
        return [SimpleNamespace(id=uuid4()) for _ in range(limit or 0)]

    monkeypatch.setattr(QuestionSetsRepo, "list_questions", _list_questions)

    listing = await CatalogService.list_questions(
        DummySession(),
        user_id=uuid4(),
        question_set_id=question_set.id,
    )

    assert calls == [2]
    assert listing.trial_only is True
    assert len(listing.questions) == 2


@pytest.mark.asyncio
async def test_list_questions_unknown_set(monkeypatch) -> None:
    _patch_set(monkeypatch, None)

    with pytest.raises(CatalogQuestionSetNotFoundError):
        await CatalogService.list_questions(
            DummySession(),
            user_id=uuid4(),
            question_set_id=uuid4(),
        )


@pytest.mark.asyncio
async def test_get_question_set_includes_question_count(monkeypatch) -> None:
    question_set = make_question_set()
    _patch_set(monkeypatch, question_set)

    async def _count(session, question_set_id):
        return 12

    monkeypatch.setattr(QuestionSetsRepo, "count_questions", _count)

    details = await CatalogService.get_question_set(
        DummySession(),
        question_set_id=question_set.id,
    )

    assert details.question_set is question_set
    assert details.question_count == 12


@pytest.mark.asyncio
async def test_create_question_set_requires_price_for_paid_sets() -> None:
    with pytest.raises(CatalogValidationError):
        await CatalogService.create_question_set(
            DummySession(),
            title="Paid",
            description="",
            category="exam",
            icon=None,
            is_paid=True,
            price=None,
            trial_questions=3,
            is_featured=False,
        )


@pytest.mark.asyncio
async def test_create_question_set_drops_price_for_free_sets(monkeypatch) -> None:
    async def _create(session, *, question_set):
        return question_set

    monkeypatch.setattr(QuestionSetsRepo, "create", _create)

    question_set = await CatalogService.create_question_set(
        DummySession(),
        title="  Free basics ",
        description="Intro",
        category=" basics ",
        icon=None,
        is_paid=False,
        price=Decimal("4.00"),
        trial_questions=None,
        is_featured=True,
        now_utc=NOW_UTC,
    )

    assert question_set.title == "Free basics"
    assert question_set.category == "basics"
    assert question_set.price is None
    assert question_set.created_at == NOW_UTC


@pytest.mark.asyncio
async def test_add_question_assigns_next_order_index(monkeypatch) -> None:
    question_set = make_question_set()
    _patch_set(monkeypatch, question_set)

    async def _next_order_index(session, question_set_id):
        return 7

    async def _create_question(session, *, question):
        return question

    monkeypatch.setattr(QuestionSetsRepo, "next_order_index", _next_order_index)
    monkeypatch.setattr(QuestionSetsRepo, "create_question", _create_question)

    question = await CatalogService.add_question(
        DummySession(),
        question_set_id=question_set.id,
        question_text="Which layer routes packets?",
        question_type="SINGLE",
        options=[{"id": "a", "text": "Network"}, {"id": "b", "text": "Session"}],
        correct_options=["a"],
        explanation=None,
        now_utc=NOW_UTC,
    )

    assert question.order_index == 7
    assert question.correct_options == ["a"]
    assert question_set.updated_at == NOW_UTC


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("question_type", "options", "correct_options"),
    [
        ("ESSAY", [{"id": "a"}, {"id": "b"}], ["a"]),
        ("SINGLE", [{"id": "a"}], ["a"]),
        ("SINGLE", [{"id": "a"}, {"id": "a"}], ["a"]),
        ("SINGLE", [{"id": "a"}, {"id": "b"}], ["a", "b"]),
        ("MULTIPLE", [{"id": "a"}, {"id": "b"}], ["c"]),
        ("MULTIPLE", [{"id": "a"}, {"id": "b"}], []),
    ],
)
async def test_add_question_rejects_invalid_payload(
    monkeypatch,
    question_type,
    options,
    correct_options,
) -> None:
    _patch_set(monkeypatch, make_question_set())

    with pytest.raises(CatalogValidationError):
        await CatalogService.add_question(
            DummySession(),
            question_set_id=uuid4(),
            question_text="Q",
            question_type=question_type,
            options=options,
            correct_options=correct_options,
            explanation=None,
        )
