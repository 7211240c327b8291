from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, HTTPException, Request
from pydantic import Field

from app.db.session import SessionLocal
from app.economy.purchases.errors import (
    PurchaseNotFoundError,
    PurchaseStateError,
    TransactionIdConflictError,
)
from app.economy.purchases.notifications import notify_access_granted
from app.economy.purchases.service import PurchaseService
from app.services.notifications import EVENT_PURCHASE_SUCCESS

from .access_helpers import _assert_internal_access, _get_notifier
from .common_models import CamelModel, PurchaseResponse, purchase_as_response

router = APIRouter(tags=["internal", "purchases"])


class ConfirmPurchaseRequest(CamelModel):
    transaction_id: str = Field(min_length=1, max_length=128)


class ConfirmPurchaseResponse(CamelModel):
    purchase: PurchaseResponse
    idempotent_replay: bool


@router.post("/internal/purchases/{purchase_id}/confirm", response_model=ConfirmPurchaseResponse)
async def confirm_purchase(
    purchase_id: UUID,
    payload: ConfirmPurchaseRequest,
    request: Request,
) -> ConfirmPurchaseResponse:
    _assert_internal_access(request)

    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await PurchaseService.confirm_purchase(
                session,
                purchase_id=purchase_id,
                transaction_id=payload.transaction_id,
                now_utc=now_utc,
            )
    except PurchaseNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_PURCHASE_NOT_FOUND"}) from exc
    except TransactionIdConflictError as exc:
        raise HTTPException(
            status_code=409, detail={"code": "E_TRANSACTION_ID_CONFLICT"}
        ) from exc
    except PurchaseStateError as exc:
        raise HTTPException(
            status_code=409, detail={"code": "E_PURCHASE_INVALID_STATE"}
        ) from exc

    if not result.idempotent_replay:
        await notify_access_granted(
            _get_notifier(request),
            purchase=result.purchase,
            now_utc=now_utc,
            event=EVENT_PURCHASE_SUCCESS,
            payload={
                "purchaseId": str(result.purchase.id),
                "questionSetId": str(result.purchase.question_set_id),
                "expiryDate": result.purchase.expiry_date.isoformat(),
            },
        )

    return ConfirmPurchaseResponse(
        purchase=purchase_as_response(result.purchase),
        idempotent_replay=result.idempotent_replay,
    )
