from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

import structlog

from app.core.config import get_settings
from app.db.repo.purchases_repo import PurchasesRepo
from app.db.session import SessionLocal
from app.economy.purchases.access import compute_remaining_days
from app.services.notifications import (
    EVENT_PURCHASE_EXPIRING,
    Notifier,
    RedisNotifier,
    publish_best_effort,
)
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)
EXPIRY_REMINDER_BATCH_SIZE = 500


async def _collect_due_reminders(
    *,
    now_utc: datetime,
    window_days: int,
) -> list[tuple[UUID, dict[str, object]]]:
    reminders: list[tuple[UUID, dict[str, object]]] = []
    async with SessionLocal.begin() as session:
        purchases = await PurchasesRepo.list_expiring_without_reminder_for_update(
            session,
            now_utc=now_utc,
            until_utc=now_utc + timedelta(days=window_days),
            limit=EXPIRY_REMINDER_BATCH_SIZE,
        )
        for purchase in purchases:
            purchase.expiry_reminder_sent_at = now_utc
            purchase.updated_at = now_utc
            reminders.append(
                (
                    purchase.user_id,
                    {
                        "purchaseId": str(purchase.id),
                        "questionSetId": str(purchase.question_set_id),
                        "expiryDate": purchase.expiry_date.isoformat(),
                        "remainingDays": compute_remaining_days(
                            expiry_date=purchase.expiry_date,
                            now_utc=now_utc,
                        ),
                    },
                )
            )
    return reminders


async def run_entitlement_expiry_reminders_async(
    *,
    notifier: Notifier | None = None,
    now_utc: datetime | None = None,
) -> dict[str, int]:
    now_utc = now_utc or datetime.now(timezone.utc)
    reminders = await _collect_due_reminders(
        now_utc=now_utc,
        window_days=get_settings().expiry_reminder_window_days,
    )

    owned_notifier = RedisNotifier.from_settings() if notifier is None and reminders else None
    active_notifier = notifier or owned_notifier
    delivered = 0
    try:
        for user_id, payload in reminders:
            if active_notifier is not None and await publish_best_effort(
                active_notifier,
                user_id=user_id,
                event=EVENT_PURCHASE_EXPIRING,
                payload=payload,
            ):
                delivered += 1
    finally:
        if owned_notifier is not None:
            await owned_notifier.close()

    result = {"reminders_marked": len(reminders), "reminders_delivered": delivered}
    logger.info("entitlement_expiry_reminders_finished", **result)
    return result


@celery_app.task(name="app.workers.tasks.entitlement_expiry.run_entitlement_expiry_reminders")
def run_entitlement_expiry_reminders() -> dict[str, int]:
    return run_async_job(
        run_entitlement_expiry_reminders_async(),
        job_name="entitlement_expiry_reminders",
    )


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "entitlement-expiry-reminders-hourly": {
            "task": "app.workers.tasks.entitlement_expiry.run_entitlement_expiry_reminders",
            "schedule": 3600.0,
            "options": {"queue": "q_normal"},
        },
    }
)
