from __future__ import annotations

from datetime import datetime

from app.db.models.purchases import Purchase
from app.economy.purchases.access import compute_remaining_days
from app.services.notifications import (
    EVENT_ACCESS_UPDATE,
    Notifier,
    publish_best_effort,
)


def build_access_update_payload(*, purchase: Purchase, now_utc: datetime) -> dict[str, object]:
    return {
        "questionSetId": str(purchase.question_set_id),
        "hasAccess": True,
        "expiryDate": purchase.expiry_date.isoformat(),
        "remainingDays": compute_remaining_days(
            expiry_date=purchase.expiry_date,
            now_utc=now_utc,
        ),
    }


async def notify_access_granted(
    notifier: Notifier,
    *,
    purchase: Purchase,
    now_utc: datetime,
    event: str,
    payload: dict[str, object],
) -> None:
    await publish_best_effort(
        notifier,
        user_id=purchase.user_id,
        event=EVENT_ACCESS_UPDATE,
        payload=build_access_update_payload(purchase=purchase, now_utc=now_utc),
    )
    await publish_best_effort(notifier, user_id=purchase.user_id, event=event, payload=payload)
