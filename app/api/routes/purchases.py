from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import NoReturn
from uuid import UUID

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import Field

from app.db.session import SessionLocal
from app.economy.purchases.access import ACCESS_CHECK_BATCH_MAX, AccessService
from app.economy.purchases.errors import (
    ActiveEntitlementExistsError,
    PurchaseAmountMismatchError,
    PurchaseError,
    PurchaseNotFoundError,
    PurchaseStateError,
    PurchaseValidationError,
    QuestionSetNotFoundError,
    QuestionSetNotPaidError,
    TransactionIdConflictError,
)
from app.economy.purchases.service import EXTEND_MONTHS_MAX, EXTEND_MONTHS_MIN, PurchaseService
from app.economy.purchases.types import AccessCheckResult

from .access_helpers import _require_admin, _resolve_user_id
from .common_models import (
    CamelModel,
    PurchaseResponse,
    QuestionSetResponse,
    purchase_as_response,
    question_set_as_response,
)

router = APIRouter(prefix="/purchases", tags=["purchases"])


class AccessCheckResponse(CamelModel):
    question_set_id: UUID
    has_access: bool
    is_paid: bool | None = None
    expiry_date: datetime | None = None
    remaining_days: int | None = None
    price: Decimal | None = None


class AccessCheckBatchRequest(CamelModel):
    question_set_ids: list[UUID] = Field(min_length=1, max_length=ACCESS_CHECK_BATCH_MAX)


class AccessCheckBatchResponse(CamelModel):
    results: list[AccessCheckResponse]


class CreatePurchaseRequest(CamelModel):
    question_set_id: UUID
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    payment_method: str = Field(min_length=1, max_length=32)


class ExtendPurchaseRequest(CamelModel):
    months: int = Field(ge=EXTEND_MONTHS_MIN, le=EXTEND_MONTHS_MAX)


class PurchaseListResponse(CamelModel):
    purchases: list[PurchaseResponse]


class ActivePurchaseResponse(CamelModel):
    purchase: PurchaseResponse
    question_set: QuestionSetResponse | None = None
    remaining_days: int


class ActivePurchaseListResponse(CamelModel):
    purchases: list[ActivePurchaseResponse]


def _access_as_response(result: AccessCheckResult) -> AccessCheckResponse:
    return AccessCheckResponse(
        question_set_id=result.question_set_id,
        has_access=result.has_access,
        is_paid=result.is_paid,
        expiry_date=result.expiry_date,
        remaining_days=result.remaining_days,
        price=result.price,
    )


def _raise_purchase_http_error(exc: PurchaseError) -> NoReturn:
    if isinstance(exc, QuestionSetNotFoundError):
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_SET_NOT_FOUND"}) from exc
    if isinstance(exc, PurchaseNotFoundError):
        raise HTTPException(status_code=404, detail={"code": "E_PURCHASE_NOT_FOUND"}) from exc
    if isinstance(exc, QuestionSetNotPaidError):
        raise HTTPException(status_code=422, detail={"code": "E_QUESTION_SET_NOT_PAID"}) from exc
    if isinstance(exc, PurchaseAmountMismatchError):
        raise HTTPException(
            status_code=422, detail={"code": "E_PURCHASE_AMOUNT_MISMATCH"}
        ) from exc
    if isinstance(exc, PurchaseValidationError):
        raise HTTPException(status_code=422, detail={"code": "E_VALIDATION_FAILED"}) from exc
    if isinstance(exc, ActiveEntitlementExistsError):
        raise HTTPException(status_code=409, detail={"code": "E_ACTIVE_PURCHASE_EXISTS"}) from exc
    if isinstance(exc, TransactionIdConflictError):
        raise HTTPException(
            status_code=409, detail={"code": "E_TRANSACTION_ID_CONFLICT"}
        ) from exc
    if isinstance(exc, PurchaseStateError):
        raise HTTPException(
            status_code=409, detail={"code": "E_PURCHASE_INVALID_STATE"}
        ) from exc
    raise exc


@router.get("/check/{question_set_id}", response_model=AccessCheckResponse)
async def check_access(question_set_id: UUID, request: Request) -> AccessCheckResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            result = await AccessService.check_access(
                session,
                user_id=user_id,
                question_set_id=question_set_id,
            )
    except PurchaseError as exc:
        _raise_purchase_http_error(exc)
    return _access_as_response(result)


@router.post("/check-batch", response_model=AccessCheckBatchResponse)
async def check_access_batch(
    payload: AccessCheckBatchRequest,
    request: Request,
) -> AccessCheckBatchResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        results = await AccessService.check_access_batch(
            session,
            user_id=user_id,
            question_set_ids=payload.question_set_ids,
        )
    return AccessCheckBatchResponse(results=[_access_as_response(result) for result in results])


@router.post("", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase(payload: CreatePurchaseRequest, request: Request) -> PurchaseResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            purchase = await PurchaseService.create_purchase(
                session,
                user_id=user_id,
                question_set_id=payload.question_set_id,
                amount=payload.amount,
                payment_method=payload.payment_method,
            )
    except PurchaseError as exc:
        _raise_purchase_http_error(exc)
    return purchase_as_response(purchase)


@router.get("", response_model=PurchaseListResponse)
async def list_purchases(request: Request) -> PurchaseListResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        purchases = await PurchaseService.list_purchases(session, user_id=user_id)
    return PurchaseListResponse(purchases=[purchase_as_response(item) for item in purchases])


@router.get("/active", response_model=ActivePurchaseListResponse)
async def list_active_purchases(request: Request) -> ActivePurchaseListResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        entitlements = await PurchaseService.list_active(session, user_id=user_id)
    return ActivePurchaseListResponse(
        purchases=[
            ActivePurchaseResponse(
                purchase=purchase_as_response(entitlement.purchase),
                question_set=(
                    question_set_as_response(entitlement.question_set)
                    if entitlement.question_set is not None
                    else None
                ),
                remaining_days=entitlement.remaining_days,
            )
            for entitlement in entitlements
        ]
    )


@router.get("/{purchase_id}", response_model=PurchaseResponse)
async def get_purchase(purchase_id: UUID, request: Request) -> PurchaseResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            purchase = await PurchaseService.get_purchase(
                session,
                user_id=user_id,
                purchase_id=purchase_id,
            )
    except PurchaseError as exc:
        _raise_purchase_http_error(exc)
    return purchase_as_response(purchase)


@router.post("/{purchase_id}/cancel", response_model=PurchaseResponse)
async def cancel_purchase(purchase_id: UUID, request: Request) -> PurchaseResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            purchase = await PurchaseService.cancel_purchase(
                session,
                user_id=user_id,
                purchase_id=purchase_id,
            )
    except PurchaseError as exc:
        _raise_purchase_http_error(exc)
    return purchase_as_response(purchase)


@router.post("/{purchase_id}/extend", response_model=PurchaseResponse)
async def extend_purchase(
    purchase_id: UUID,
    payload: ExtendPurchaseRequest,
    request: Request,
) -> PurchaseResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            purchase = await PurchaseService.extend_purchase(
                session,
                user_id=user_id,
                purchase_id=purchase_id,
                months=payload.months,
            )
    except PurchaseError as exc:
        _raise_purchase_http_error(exc)
    return purchase_as_response(purchase)


@router.post("/{purchase_id}/refund", response_model=PurchaseResponse)
async def refund_purchase(purchase_id: UUID, request: Request) -> PurchaseResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            await _require_admin(session, user_id=user_id)
            purchase = await PurchaseService.refund_purchase(session, purchase_id=purchase_id)
    except PurchaseError as exc:
        _raise_purchase_http_error(exc)
    return purchase_as_response(purchase)
