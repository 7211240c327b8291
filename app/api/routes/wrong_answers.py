from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request, Response, status

from app.db.session import SessionLocal
from app.study.errors import StudyNotFoundError, StudyValidationError
from app.study.wrong_answers import WrongAnswerService

from .access_helpers import _resolve_user_id
from .study_models import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    SaveWrongAnswerRequest,
    UpdateMemoRequest,
    WrongAnswerListResponse,
    WrongAnswerResponse,
    wrong_answer_as_response,
)

router = APIRouter(prefix="/wrong-answers", tags=["wrong-answers"])

_NOT_FOUND_DETAIL = {"code": "E_WRONG_ANSWER_NOT_FOUND"}


@router.get("", response_model=WrongAnswerListResponse)
async def list_wrong_answers(
    request: Request,
    question_set_id: UUID | None = Query(default=None, alias="questionSetId"),
) -> WrongAnswerListResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        entries = await WrongAnswerService.list_entries(
            session,
            user_id=user_id,
            question_set_id=question_set_id,
        )
    return WrongAnswerListResponse(
        wrong_answers=[wrong_answer_as_response(entry) for entry in entries]
    )


@router.post("", response_model=WrongAnswerResponse, status_code=status.HTTP_201_CREATED)
async def save_wrong_answer(
    payload: SaveWrongAnswerRequest,
    request: Request,
) -> WrongAnswerResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            entry = await WrongAnswerService.save(
                session,
                user_id=user_id,
                question_set_id=payload.question_set_id,
                question_id=payload.question_id,
                selected_options=payload.selected_options,
                memo=payload.memo,
            )
    except StudyNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_NOT_FOUND"}) from exc
    return wrong_answer_as_response(entry)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_wrong_answers(
    payload: BulkDeleteRequest,
    request: Request,
) -> BulkDeleteResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            deleted = await WrongAnswerService.bulk_delete(
                session,
                user_id=user_id,
                wrong_answer_ids=payload.ids,
            )
    except StudyValidationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_VALIDATION_FAILED"}) from exc
    return BulkDeleteResponse(deleted=deleted)


@router.get("/{wrong_answer_id}", response_model=WrongAnswerResponse)
async def get_wrong_answer(wrong_answer_id: UUID, request: Request) -> WrongAnswerResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            entry = await WrongAnswerService.get_entry(
                session,
                user_id=user_id,
                wrong_answer_id=wrong_answer_id,
            )
    except StudyNotFoundError as exc:
        raise HTTPException(status_code=404, detail=_NOT_FOUND_DETAIL) from exc
    return wrong_answer_as_response(entry)


@router.patch("/{wrong_answer_id}/memo", response_model=WrongAnswerResponse)
async def update_memo(
    wrong_answer_id: UUID,
    payload: UpdateMemoRequest,
    request: Request,
) -> WrongAnswerResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            entry = await WrongAnswerService.update_memo(
                session,
                user_id=user_id,
                wrong_answer_id=wrong_answer_id,
                memo=payload.memo,
            )
    except StudyNotFoundError as exc:
        raise HTTPException(status_code=404, detail=_NOT_FOUND_DETAIL) from exc
    return wrong_answer_as_response(entry)


@router.post("/{wrong_answer_id}/mastered", status_code=status.HTTP_204_NO_CONTENT)
async def mark_mastered(wrong_answer_id: UUID, request: Request) -> Response:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            await WrongAnswerService.mark_mastered(
                session,
                user_id=user_id,
                wrong_answer_id=wrong_answer_id,
            )
    except StudyNotFoundError as exc:
        raise HTTPException(status_code=404, detail=_NOT_FOUND_DETAIL) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
