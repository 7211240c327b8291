from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import TransientPersistenceError
from app.db.repo.purchases_repo import PurchasesRepo
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.db.repo.redeem_codes_repo import RedeemCodesRepo
from app.economy.redeem.errors import (
    RedeemCodeAlreadyUsedError,
    RedeemCodeMisconfiguredError,
    RedeemCodeNotFoundError,
    RedeemQuestionSetNotFoundError,
)
from app.economy.redeem.service import RedemptionWorkflow
from app.services import notifications as notifications_module
from app.services.notifications import EVENT_ACCESS_UPDATE, EVENT_REDEEM_SUCCESS
from tests.helpers import (
    NOW_UTC,
    DummySessionLocal,
    HangingNotifier,
    RecordingNotifier,
    make_purchase,
    make_question_set,
    make_redeem_code,
)


@pytest.fixture
def question_set():
    return make_question_set()


@pytest.fixture
def redeem_code(question_set):
    return make_redeem_code(question_set_id=question_set.id, validity_days=14)


@pytest.fixture
def repo_state(monkeypatch, question_set, redeem_code) -> dict[str, object]:
    state: dict[str, object] = {
        "code": redeem_code,
        "question_set": question_set,
        "claim_result": True,
        "valid_entitlement": None,
        "claims": [],
        "created": [],
    }

    async def _get_by_code(session, code: str):
        state["looked_up_code"] = code
        return state["code"]

    async def _get_set(session, question_set_id):
        return state["question_set"]

    async def _claim_unused(session, *, redeem_code_id, user_id, now_utc):
        state["claims"].append((redeem_code_id, user_id, now_utc))
        return state["claim_result"]

    async def _get_valid_entitlement(session, **kwargs):
        return state["valid_entitlement"]

    async def _create(session, *, purchase):
        state["created"].append(purchase)
        return purchase

    monkeypatch.setattr(RedeemCodesRepo, "get_by_code", _get_by_code)
    monkeypatch.setattr(RedeemCodesRepo, "claim_unused", _claim_unused)
    monkeypatch.setattr(QuestionSetsRepo, "get_by_id", _get_set)
    monkeypatch.setattr(PurchasesRepo, "get_valid_entitlement", _get_valid_entitlement)
    monkeypatch.setattr(PurchasesRepo, "create", _create)
    return state


@pytest.mark.asyncio
async def test_redeem_creates_active_entitlement_and_notifies(repo_state, redeem_code) -> None:
    user_id = uuid4()
    factory = DummySessionLocal()
    notifier = RecordingNotifier()
    workflow = RedemptionWorkflow(session_factory=factory, notifier=notifier)

    result = await workflow.redeem(user_id=user_id, code="  abcd2345 ", now_utc=NOW_UTC)

    assert repo_state["looked_up_code"] == "ABCD2345"
    assert repo_state["claims"] == [(redeem_code.id, user_id, NOW_UTC)]
    purchase = result.purchase
    assert purchase.status == "ACTIVE"
    assert purchase.user_id == user_id
    assert purchase.amount == Decimal("0")
    assert purchase.payment_method == "REDEEM_CODE"
    assert purchase.transaction_id == f"redeem:{redeem_code.id}"
    assert purchase.purchase_date == NOW_UTC
    assert purchase.expiry_date == NOW_UTC + timedelta(days=14)
    assert result.question_set is repo_state["question_set"]
    assert factory.commits == 1
    assert notifier.event_names == [EVENT_ACCESS_UPDATE, EVENT_REDEEM_SUCCESS]
    access_payload = notifier.events[0][2]
    assert access_payload["hasAccess"] is True
    assert access_payload["remainingDays"] == 14


@pytest.mark.asyncio
async def test_redeem_returns_when_notification_delivery_hangs(
    monkeypatch, repo_state, redeem_code
) -> None:
    monkeypatch.setattr(notifications_module, "PUBLISH_TIMEOUT_SECONDS", 0.01)
    factory = DummySessionLocal()
    notifier = HangingNotifier()
    workflow = RedemptionWorkflow(session_factory=factory, notifier=notifier)

    result = await asyncio.wait_for(
        workflow.redeem(user_id=uuid4(), code="ABCD2345", now_utc=NOW_UTC),
        timeout=5.0,
    )

    assert result.purchase.status == "ACTIVE"
    assert factory.commits == 1
    assert notifier.attempts == 2

@pytest.mark.asyncio
async def test_redeem_unknown_code_raises_not_found(repo_state) -> None:
    repo_state["code"] = None
    factory = DummySessionLocal()
    notifier = RecordingNotifier()
    workflow = RedemptionWorkflow(session_factory=factory, notifier=notifier)

    with pytest.raises(RedeemCodeNotFoundError):
        await workflow.redeem(user_id=uuid4(), code="NOPE2345", now_utc=NOW_UTC)

    assert repo_state["claims"] == []
    assert factory.rollbacks == 1
    assert notifier.events == []


@pytest.mark.asyncio
async def test_redeem_blank_code_raises_not_found_without_lookup(repo_state) -> None:
    workflow = RedemptionWorkflow(session_factory=DummySessionLocal(), notifier=RecordingNotifier())

    with pytest.raises(RedeemCodeNotFoundError):
        await workflow.redeem(user_id=uuid4(), code="   ", now_utc=NOW_UTC)

    assert "looked_up_code" not in repo_state


@pytest.mark.asyncio
async def test_redeem_used_code_raises_already_used_even_for_same_user(repo_state) -> None:
    user_id = uuid4()
    repo_state["code"] = make_redeem_code(is_used=True, used_by=user_id, used_at=NOW_UTC)
    notifier = RecordingNotifier()
    workflow = RedemptionWorkflow(session_factory=DummySessionLocal(), notifier=notifier)

    with pytest.raises(RedeemCodeAlreadyUsedError):
        await workflow.redeem(user_id=user_id, code="ABCD2345", now_utc=NOW_UTC)

    assert repo_state["claims"] == []
    assert repo_state["created"] == []
    assert notifier.events == []


@pytest.mark.asyncio
async def test_redeem_code_without_question_set_is_misconfigured(repo_state) -> None:
    repo_state["code"] = make_redeem_code(question_set_id=None)
    workflow = RedemptionWorkflow(session_factory=DummySessionLocal(), notifier=RecordingNotifier())

    with pytest.raises(RedeemCodeMisconfiguredError):
        await workflow.redeem(user_id=uuid4(), code="ABCD2345", now_utc=NOW_UTC)

    assert repo_state["claims"] == []


@pytest.mark.asyncio
async def test_redeem_code_with_missing_question_set_is_not_found(repo_state) -> None:
    repo_state["question_set"] = None
    workflow = RedemptionWorkflow(session_factory=DummySessionLocal(), notifier=RecordingNotifier())

    with pytest.raises(RedeemQuestionSetNotFoundError):
        await workflow.redeem(user_id=uuid4(), code="ABCD2345", now_utc=NOW_UTC)

    assert repo_state["claims"] == []
    assert repo_state["created"] == []


@pytest.mark.asyncio
async def test_redeem_lost_claim_race_raises_already_used(repo_state) -> None:
    repo_state["claim_result"] = False
    factory = DummySessionLocal()
    notifier = RecordingNotifier()
    workflow = RedemptionWorkflow(session_factory=factory, notifier=notifier)

    with pytest.raises(RedeemCodeAlreadyUsedError):
        await workflow.redeem(user_id=uuid4(), code="ABCD2345", now_utc=NOW_UTC)

    assert len(repo_state["claims"]) == 1
    assert repo_state["created"] == []
    assert factory.rollbacks == 1
    assert notifier.events == []


@pytest.mark.asyncio
async def test_redeem_succeeds_when_notifier_fails(repo_state) -> None:
    factory = DummySessionLocal()
    notifier = RecordingNotifier(fail_with=ConnectionError("redis down"))
    workflow = RedemptionWorkflow(session_factory=factory, notifier=notifier)

    result = await workflow.redeem(user_id=uuid4(), code="ABCD2345", now_utc=NOW_UTC)

    assert result.purchase.status == "ACTIVE"
    assert factory.commits == 1


@pytest.mark.asyncio
async def test_redeem_supersedes_existing_valid_entitlement(repo_state) -> None:
    user_id = uuid4()
    current = make_purchase(
        user_id=user_id,
        question_set_id=repo_state["question_set"].id,
        expiry_date=NOW_UTC + timedelta(days=5),
    )
    repo_state["valid_entitlement"] = current
    workflow = RedemptionWorkflow(session_factory=DummySessionLocal(), notifier=RecordingNotifier())

    result = await workflow.redeem(user_id=user_id, code="ABCD2345", now_utc=NOW_UTC)

    assert current.status == "REVOKED"
    assert result.purchase.expiry_date == NOW_UTC + timedelta(days=5 + 14)
    assert len(repo_state["created"]) == 1


@pytest.mark.asyncio
async def test_redeem_falls_back_to_default_entitlement_days(repo_state, question_set) -> None:
    repo_state["code"] = make_redeem_code(question_set_id=question_set.id, validity_days=0)
    workflow = RedemptionWorkflow(session_factory=DummySessionLocal(), notifier=RecordingNotifier())

    result = await workflow.redeem(user_id=uuid4(), code="ABCD2345", now_utc=NOW_UTC)

    assert result.purchase.expiry_date == NOW_UTC + timedelta(days=30)


@pytest.mark.asyncio
async def test_redeem_maps_connection_failure_to_transient_error(repo_state) -> None:
    factory = DummySessionLocal(
        commit_error=OperationalError("COMMIT", {}, ConnectionResetError("connection reset")),
    )
    notifier = RecordingNotifier()
    workflow = RedemptionWorkflow(session_factory=factory, notifier=notifier)

    with pytest.raises(TransientPersistenceError):
        await workflow.redeem(user_id=uuid4(), code="ABCD2345", now_utc=NOW_UTC)

    assert notifier.events == []
