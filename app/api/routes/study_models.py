from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.db.models.user_progress import UserProgress
from app.db.models.wrong_answers import WrongAnswer
from app.study.types import ProgressStats

from .common_models import CamelModel


class RecordProgressRequest(CamelModel):
    question_set_id: UUID
    question_id: UUID
    is_correct: bool
    time_spent: int = Field(ge=0, le=86_400)


class ProgressEntryResponse(CamelModel):
    id: UUID
    question_set_id: UUID
    question_id: UUID
    is_correct: bool
    time_spent: int
    last_accessed: datetime


class ProgressStatsResponse(CamelModel):
    question_set_id: UUID
    answered: int
    correct: int
    accuracy: float
    total_time_spent: int
    average_time_spent: float


class RecordProgressResponse(CamelModel):
    progress: ProgressEntryResponse
    stats: ProgressStatsResponse


class ProgressStatsListResponse(CamelModel):
    stats: list[ProgressStatsResponse]


class ProgressSnapshotResponse(CamelModel):
    user_id: UUID
    stats: ProgressStatsResponse
    entries: list[ProgressEntryResponse]


class ResetProgressResponse(CamelModel):
    question_set_id: UUID
    deleted: int


class SaveWrongAnswerRequest(CamelModel):
    question_set_id: UUID
    question_id: UUID
    selected_options: list[str] = Field(max_length=10)
    memo: str | None = Field(default=None, max_length=2000)


class UpdateMemoRequest(CamelModel):
    memo: str | None = Field(default=None, max_length=2000)


class BulkDeleteRequest(CamelModel):
    ids: list[UUID] = Field(min_length=1, max_length=200)


class BulkDeleteResponse(CamelModel):
    deleted: int


class WrongAnswerResponse(CamelModel):
    id: UUID
    question_set_id: UUID
    question_id: UUID
    question: str
    question_type: str
    options: list[dict[str, object]]
    selected_options: list[str]
    correct_options: list[str]
    explanation: str | None = None
    memo: str | None = None
    created_at: datetime
    updated_at: datetime


class WrongAnswerListResponse(CamelModel):
    wrong_answers: list[WrongAnswerResponse]


def progress_entry_as_response(progress: UserProgress) -> ProgressEntryResponse:
    return ProgressEntryResponse(
        id=progress.id,
        question_set_id=progress.question_set_id,
        question_id=progress.question_id,
        is_correct=progress.is_correct,
        time_spent=progress.time_spent,
        last_accessed=progress.last_accessed,
    )


def progress_stats_as_response(stats: ProgressStats) -> ProgressStatsResponse:
    return ProgressStatsResponse(
        question_set_id=stats.question_set_id,
        answered=stats.answered,
        correct=stats.correct,
        accuracy=stats.accuracy,
        total_time_spent=stats.total_time_spent,
        average_time_spent=stats.average_time_spent,
    )


def wrong_answer_as_response(entry: WrongAnswer) -> WrongAnswerResponse:
    return WrongAnswerResponse(
        id=entry.id,
        question_set_id=entry.question_set_id,
        question_id=entry.question_id,
        question=entry.question,
        question_type=entry.question_type,
        options=list(entry.options),
        selected_options=list(entry.selected_options),
        correct_options=list(entry.correct_options),
        explanation=entry.explanation,
        memo=entry.memo,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )
