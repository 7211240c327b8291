from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import Field

from app.catalog.errors import CatalogQuestionSetNotFoundError, CatalogValidationError
from app.catalog.service import CatalogService
from app.db.models.questions import Question
from app.db.session import SessionLocal

from .access_helpers import _require_admin, _resolve_user_id
from .common_models import CamelModel, QuestionSetResponse, question_set_as_response

router = APIRouter(prefix="/question-sets", tags=["question-sets"])


class QuestionOption(CamelModel):
    id: str = Field(min_length=1, max_length=16)
    text: str = Field(min_length=1, max_length=1000)


class QuestionResponse(CamelModel):
    id: UUID
    question_set_id: UUID
    question_text: str
    question_type: str
    options: list[QuestionOption]
    correct_options: list[str]
    explanation: str | None = None
    order_index: int
    created_at: datetime


class QuestionSetListResponse(CamelModel):
    question_sets: list[QuestionSetResponse]


class QuestionSetDetailsResponse(CamelModel):
    question_set: QuestionSetResponse
    question_count: int


class QuestionListResponse(CamelModel):
    question_set_id: UUID
    has_access: bool
    trial_only: bool
    questions: list[QuestionResponse]


class CreateQuestionSetRequest(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=5000)
    category: str = Field(min_length=1, max_length=64)
    icon: str | None = Field(default=None, max_length=255)
    is_paid: bool = False
    price: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    trial_questions: int | None = Field(default=None, ge=0)
    is_featured: bool = False


class CreateQuestionRequest(CamelModel):
    question_text: str = Field(min_length=1, max_length=5000)
    question_type: str = Field(pattern="^(SINGLE|MULTIPLE)$")
    options: list[QuestionOption] = Field(min_length=2, max_length=10)
    correct_options: list[str] = Field(min_length=1, max_length=10)
    explanation: str | None = Field(default=None, max_length=5000)


def _question_as_response(question: Question) -> QuestionResponse:
    return QuestionResponse(
        id=question.id,
        question_set_id=question.question_set_id,
        question_text=question.question_text,
        question_type=question.question_type,
        options=[QuestionOption.model_validate(option) for option in question.options],
        correct_options=list(question.correct_options),
        explanation=question.explanation,
        order_index=question.order_index,
        created_at=question.created_at,
    )


@router.get("", response_model=QuestionSetListResponse)
async def list_question_sets(
    request: Request,
    category: str | None = Query(default=None, max_length=64),
    featured: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
) -> QuestionSetListResponse:
    _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        question_sets = await CatalogService.list_question_sets(
            session,
            category=category,
            featured_only=featured,
            limit=limit,
        )
    return QuestionSetListResponse(
        question_sets=[question_set_as_response(item) for item in question_sets]
    )


@router.get("/{question_set_id}", response_model=QuestionSetDetailsResponse)
async def get_question_set(question_set_id: UUID, request: Request) -> QuestionSetDetailsResponse:
    _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            details = await CatalogService.get_question_set(
                session,
                question_set_id=question_set_id,
            )
    except CatalogQuestionSetNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_SET_NOT_FOUND"}) from exc
    return QuestionSetDetailsResponse(
        question_set=question_set_as_response(details.question_set),
        question_count=details.question_count,
    )


@router.get("/{question_set_id}/questions", response_model=QuestionListResponse)
async def list_questions(question_set_id: UUID, request: Request) -> QuestionListResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            listing = await CatalogService.list_questions(
                session,
                user_id=user_id,
                question_set_id=question_set_id,
            )
    except CatalogQuestionSetNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_SET_NOT_FOUND"}) from exc
    return QuestionListResponse(
        question_set_id=listing.question_set.id,
        has_access=listing.has_access,
        trial_only=listing.trial_only,
        questions=[_question_as_response(question) for question in listing.questions],
    )


@router.post("", response_model=QuestionSetResponse, status_code=status.HTTP_201_CREATED)
async def create_question_set(
    payload: CreateQuestionSetRequest,
    request: Request,
) -> QuestionSetResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            await _require_admin(session, user_id=user_id)
            question_set = await CatalogService.create_question_set(
                session,
                title=payload.title,
                description=payload.description,
                category=payload.category,
                icon=payload.icon,
                is_paid=payload.is_paid,
                price=payload.price,
                trial_questions=payload.trial_questions,
                is_featured=payload.is_featured,
            )
    except CatalogValidationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_VALIDATION_FAILED"}) from exc
    return question_set_as_response(question_set)


@router.post(
    "/{question_set_id}/questions",
    response_model=QuestionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_question(
    question_set_id: UUID,
    payload: CreateQuestionRequest,
    request: Request,
) -> QuestionResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            await _require_admin(session, user_id=user_id)
            question = await CatalogService.add_question(
                session,
                question_set_id=question_set_id,
                question_text=payload.question_text,
                question_type=payload.question_type,
                options=[option.model_dump() for option in payload.options],
                correct_options=payload.correct_options,
                explanation=payload.explanation,
            )
    except CatalogQuestionSetNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_SET_NOT_FOUND"}) from exc
    except CatalogValidationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_VALIDATION_FAILED"}) from exc
    return _question_as_response(question)
