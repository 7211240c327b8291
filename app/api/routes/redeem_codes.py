from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, Response, status
from pydantic import Field

from app.core.errors import TransientPersistenceError
from app.db.session import SessionLocal
from app.economy.redeem.errors import (
    RedeemCodeAlreadyUsedError,
    RedeemCodeGenerationError,
    RedeemCodeMisconfiguredError,
    RedeemCodeNotFoundError,
    RedeemCodeValidationError,
    RedeemQuestionSetNotFoundError,
)
from app.economy.redeem.service import RedeemCodeService, RedemptionWorkflow

from .access_helpers import _get_notifier, _require_admin, _resolve_user_id
from .common_models import (
    CamelModel,
    PurchaseResponse,
    QuestionSetResponse,
    RedeemCodeResponse,
    purchase_as_response,
    question_set_as_response,
    redeem_code_as_response,
)

router = APIRouter(prefix="/redeem-codes", tags=["redeem-codes"])
logger = structlog.get_logger(__name__)


class RedeemRequest(CamelModel):
    code: str = Field(min_length=1, max_length=64)


class RedeemResponse(CamelModel):
    question_set: QuestionSetResponse
    purchase: PurchaseResponse


class GenerateCodesRequest(CamelModel):
    question_set_id: UUID
    validity_days: int = Field(ge=1, le=3650)
    quantity: int = Field(ge=1, le=500)


class RedeemCodeListResponse(CamelModel):
    codes: list[RedeemCodeResponse]


class ReassignCodeRequest(CamelModel):
    question_set_id: UUID


class IntegrityReportResponse(CamelModel):
    checked_at: datetime
    missing_question_set_count: int
    codes: list[RedeemCodeResponse]


class RedeemedCodeResponse(CamelModel):
    code: str
    question_set_id: UUID | None = None
    question_set_title: str | None = None
    used_at: datetime | None = None
    validity_days: int
    entitlement_expiry_date: datetime | None = None


class RedeemedCodeListResponse(CamelModel):
    codes: list[RedeemedCodeResponse]


def _build_redemption_workflow(request: Request) -> RedemptionWorkflow:
    return RedemptionWorkflow(session_factory=SessionLocal, notifier=_get_notifier(request))


@router.post("/redeem", response_model=RedeemResponse)
async def redeem_code(payload: RedeemRequest, request: Request) -> RedeemResponse:
    user_id = _resolve_user_id(request)
    workflow = _build_redemption_workflow(request)
    try:
        result = await workflow.redeem(user_id=user_id, code=payload.code)
    except RedeemQuestionSetNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_SET_NOT_FOUND"}) from exc
    except RedeemCodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_REDEEM_CODE_NOT_FOUND"}) from exc
    except RedeemCodeAlreadyUsedError as exc:
        raise HTTPException(
            status_code=409, detail={"code": "E_REDEEM_CODE_ALREADY_USED"}
        ) from exc
    except RedeemCodeMisconfiguredError as exc:
        raise HTTPException(
            status_code=422, detail={"code": "E_REDEEM_CODE_MISCONFIGURED"}
        ) from exc
    except TransientPersistenceError as exc:
        raise HTTPException(
            status_code=503, detail={"code": "E_PERSISTENCE_UNAVAILABLE"}
        ) from exc

    return RedeemResponse(
        question_set=question_set_as_response(result.question_set),
        purchase=purchase_as_response(result.purchase),
    )


@router.post(
    "/generate",
    response_model=RedeemCodeListResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_codes(payload: GenerateCodesRequest, request: Request) -> RedeemCodeListResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            await _require_admin(session, user_id=user_id)
            codes = await RedeemCodeService.generate_codes(
                session,
                question_set_id=payload.question_set_id,
                validity_days=payload.validity_days,
                quantity=payload.quantity,
                created_by=user_id,
            )
    except RedeemQuestionSetNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_SET_NOT_FOUND"}) from exc
    except RedeemCodeValidationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_VALIDATION_FAILED"}) from exc
    except RedeemCodeGenerationError as exc:
        logger.error("redeem_code_generation_exhausted", question_set_id=str(payload.question_set_id))
        raise HTTPException(
            status_code=503, detail={"code": "E_REDEEM_CODE_GENERATION_FAILED"}
        ) from exc

    return RedeemCodeListResponse(codes=[redeem_code_as_response(code) for code in codes])


@router.get("", response_model=RedeemCodeListResponse)
async def list_codes(
    request: Request,
    is_used: bool | None = Query(default=None, alias="isUsed"),
    question_set_id: UUID | None = Query(default=None, alias="questionSetId"),
    limit: int = Query(default=100, ge=1, le=500),
) -> RedeemCodeListResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        await _require_admin(session, user_id=user_id)
        codes = await RedeemCodeService.list_codes(
            session,
            is_used=is_used,
            question_set_id=question_set_id,
            limit=limit,
        )
    return RedeemCodeListResponse(codes=[redeem_code_as_response(code) for code in codes])


@router.get("/integrity", response_model=IntegrityReportResponse)
async def check_integrity(request: Request) -> IntegrityReportResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        await _require_admin(session, user_id=user_id)
        codes = await RedeemCodeService.list_codes_missing_question_set(session)
    return IntegrityReportResponse(
        checked_at=datetime.now(timezone.utc),
        missing_question_set_count=len(codes),
        codes=[redeem_code_as_response(code) for code in codes],
    )


@router.get("/user", response_model=RedeemedCodeListResponse)
async def list_user_redeemed_codes(request: Request) -> RedeemedCodeListResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        views = await RedeemCodeService.list_user_redeemed_codes(session, user_id=user_id)
    return RedeemedCodeListResponse(
        codes=[
            RedeemedCodeResponse(
                code=view.redeem_code.code,
                question_set_id=view.redeem_code.question_set_id,
                question_set_title=(
                    view.question_set.title if view.question_set is not None else None
                ),
                used_at=view.redeem_code.used_at,
                validity_days=view.redeem_code.validity_days,
                entitlement_expiry_date=view.entitlement_expiry_date,
            )
            for view in views
        ]
    )


@router.delete("/{redeem_code_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_code(redeem_code_id: UUID, request: Request) -> Response:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            await _require_admin(session, user_id=user_id)
            await RedeemCodeService.delete_code(session, redeem_code_id=redeem_code_id)
    except RedeemCodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_REDEEM_CODE_NOT_FOUND"}) from exc
    except RedeemCodeValidationError as exc:
        raise HTTPException(
            status_code=409, detail={"code": "E_REDEEM_CODE_ALREADY_USED"}
        ) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{redeem_code_id}/question-set", response_model=RedeemCodeResponse)
async def reassign_code(
    redeem_code_id: UUID,
    payload: ReassignCodeRequest,
    request: Request,
) -> RedeemCodeResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            await _require_admin(session, user_id=user_id)
            redeem_code = await RedeemCodeService.reassign_code(
                session,
                redeem_code_id=redeem_code_id,
                question_set_id=payload.question_set_id,
            )
    except RedeemQuestionSetNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_SET_NOT_FOUND"}) from exc
    except RedeemCodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_REDEEM_CODE_NOT_FOUND"}) from exc
    except RedeemCodeValidationError as exc:
        raise HTTPException(
            status_code=409, detail={"code": "E_REDEEM_CODE_ALREADY_USED"}
        ) from exc
    return redeem_code_as_response(redeem_code)
