from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import pytest

from app.db.repo.purchases_repo import PurchasesRepo
from app.services.notifications import EVENT_PURCHASE_EXPIRING
from app.workers.celery_app import celery_app
from app.workers.tasks import entitlement_expiry
from tests.helpers import NOW_UTC, DummySessionLocal, RecordingNotifier, make_purchase


def _patch_environment(monkeypatch, purchases, *, window_days: int = 3) -> DummySessionLocal:
    session_factory = DummySessionLocal()
    captured: dict[str, object] = {}

    async def _list_expiring(session, *, now_utc, until_utc, limit):
        captured.update(now_utc=now_utc, until_utc=until_utc, limit=limit)
        return purchases

    monkeypatch.setattr(entitlement_expiry, "SessionLocal", session_factory)
    monkeypatch.setattr(
        entitlement_expiry,
        "get_settings",
        lambda: SimpleNamespace(expiry_reminder_window_days=window_days),
    )
    monkeypatch.setattr(PurchasesRepo, "list_expiring_without_reminder_for_update", _list_expiring)
    session_factory.captured = captured
    return session_factory


@pytest.mark.asyncio
async def test_expiry_reminders_mark_and_publish(monkeypatch) -> None:
    soon = make_purchase(expiry_date=NOW_UTC + timedelta(days=1, hours=2))
    later = make_purchase(expiry_date=NOW_UTC + timedelta(days=2))
    session_factory = _patch_environment(monkeypatch, [soon, later])
    notifier = RecordingNotifier()

    result = await entitlement_expiry.run_entitlement_expiry_reminders_async(
        notifier=notifier,
        now_utc=NOW_UTC,
    )

    assert result == {"reminders_marked": 2, "reminders_delivered": 2}
    assert soon.expiry_reminder_sent_at == NOW_UTC
    assert later.expiry_reminder_sent_at == NOW_UTC
    assert session_factory.commits == 1
    assert session_factory.captured["until_utc"] == NOW_UTC + timedelta(days=3)
    assert notifier.event_names == [EVENT_PURCHASE_EXPIRING, EVENT_PURCHASE_EXPIRING]
    assert notifier.events[0][0] == soon.user_id
    assert notifier.events[0][2]["remainingDays"] == 2


@pytest.mark.asyncio
async def test_expiry_reminders_count_failed_deliveries(monkeypatch) -> None:
    _patch_environment(monkeypatch, [make_purchase(expiry_date=NOW_UTC + timedelta(hours=5))])
    notifier = RecordingNotifier(fail_with=ConnectionError("redis down"))

    result = await entitlement_expiry.run_entitlement_expiry_reminders_async(
        notifier=notifier,
        now_utc=NOW_UTC,
    )

    assert result == {"reminders_marked": 1, "reminders_delivered": 0}


@pytest.mark.asyncio
async def test_expiry_reminders_skip_notifier_when_nothing_due(monkeypatch) -> None:
    _patch_environment(monkeypatch, [])

    def _fail_from_settings(*args, **kwargs):
        raise AssertionError("no notifier should be created without reminders")

    monkeypatch.setattr(entitlement_expiry.RedisNotifier, "from_settings", _fail_from_settings)

    result = await entitlement_expiry.run_entitlement_expiry_reminders_async(now_utc=NOW_UTC)

    assert result == {"reminders_marked": 0, "reminders_delivered": 0}


def test_run_entitlement_expiry_reminders_task_wrapper(monkeypatch) -> None:
    async def fake_async() -> dict[str, int]:
        return {"reminders_marked": 4, "reminders_delivered": 3}

    monkeypatch.setattr(entitlement_expiry, "run_entitlement_expiry_reminders_async", fake_async)

    result = entitlement_expiry.run_entitlement_expiry_reminders()

    assert result == {"reminders_marked": 4, "reminders_delivered": 3}


def test_expiry_reminders_scheduled_hourly() -> None:
    schedule = celery_app.conf.beat_schedule["entitlement-expiry-reminders-hourly"]

    assert schedule["task"] == entitlement_expiry.run_entitlement_expiry_reminders.name
    assert schedule["schedule"] == 3600.0
