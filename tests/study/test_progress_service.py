from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.db.repo.user_progress_repo import ProgressAggregate, UserProgressRepo
from app.study.errors import StudyNotFoundError, StudyValidationError
from app.study.progress import ProgressService, build_progress_stats
from tests.helpers import NOW_UTC, DummySession


def _patch_question(monkeypatch, question) -> None:
    async def _get_question(session, *, question_set_id, question_id):
        return question

    monkeypatch.setattr(QuestionSetsRepo, "get_question", _get_question)


def test_build_progress_stats_computes_accuracy_and_average_time() -> None:
    question_set_id = uuid4()
    stats = build_progress_stats(
        ProgressAggregate(
            question_set_id=question_set_id,
            answered=3,
            correct=2,
            total_time_spent=50,
        )
    )

    assert stats.accuracy == 66.67
    assert stats.average_time_spent == 16.67
    assert stats.question_set_id == question_set_id


@pytest.mark.asyncio
async def test_record_answer_updates_existing_row(monkeypatch) -> None:
    existing = SimpleNamespace(is_correct=False, time_spent=10, last_accessed=None, updated_at=None)
    _patch_question(monkeypatch, SimpleNamespace(id=uuid4()))

    async def _get_for_update(session, **kwargs):
        return existing

    async def _create(session, *, progress):
        raise AssertionError("existing row must be updated in place")

    monkeypatch.setattr(UserProgressRepo, "get_for_update", _get_for_update)
    monkeypatch.setattr(UserProgressRepo, "create", _create)

    result = await ProgressService.record_answer(
        DummySession(),
        user_id=uuid4(),
        question_set_id=uuid4(),
        question_id=uuid4(),
        is_correct=True,
        time_spent=4,
        now_utc=NOW_UTC,
    )

    assert result is existing
    assert existing.is_correct is True
    assert existing.time_spent == 4
    assert existing.last_accessed == NOW_UTC


@pytest.mark.asyncio
async def test_record_answer_recovers_from_concurrent_insert(monkeypatch) -> None:
    concurrent = SimpleNamespace(is_correct=False, time_spent=1, last_accessed=None, updated_at=None)
    lookups = iter([None, concurrent])
    _patch_question(monkeypatch, SimpleNamespace(id=uuid4()))

    async def _get_for_update(session, **kwargs):
        return next(lookups)

    async def _create(session, *, progress):
        raise IntegrityError("INSERT INTO user_progress", {}, Exception("duplicate key"))

    monkeypatch.setattr(UserProgressRepo, "get_for_update", _get_for_update)
    monkeypatch.setattr(UserProgressRepo, "create", _create)

    result = await ProgressService.record_answer(
        DummySession(),
        user_id=uuid4(),
        question_set_id=uuid4(),
        question_id=uuid4(),
        is_correct=True,
        time_spent=9,
        now_utc=NOW_UTC,
    )

    assert result is concurrent
    assert concurrent.time_spent == 9


@pytest.mark.asyncio
async def test_record_answer_rejects_unknown_question_and_negative_time(monkeypatch) -> None:
    _patch_question(monkeypatch, None)

    with pytest.raises(StudyNotFoundError):
        await ProgressService.record_answer(
            DummySession(),
            user_id=uuid4(),
            question_set_id=uuid4(),
            question_id=uuid4(),
            is_correct=True,
            time_spent=1,
        )
    with pytest.raises(StudyValidationError):
        await ProgressService.record_answer(
            DummySession(),
            user_id=uuid4(),
            question_set_id=uuid4(),
            question_id=uuid4(),
            is_correct=True,
            time_spent=-1,
        )


@pytest.mark.asyncio
async def test_get_set_stats_returns_zeroes_without_answers(monkeypatch) -> None:
    async def _aggregate(session, *, user_id, question_set_id=None):
        return []

    monkeypatch.setattr(UserProgressRepo, "aggregate_by_set", _aggregate)
    question_set_id = uuid4()

    stats = await ProgressService.get_set_stats(
        DummySession(),
        user_id=uuid4(),
        question_set_id=question_set_id,
    )

    assert stats.question_set_id == question_set_id
    assert stats.answered == 0
    assert stats.accuracy == 0.0
