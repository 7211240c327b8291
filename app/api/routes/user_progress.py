from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Request

from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.services.notifications import EVENT_PROGRESS_UPDATE, publish_best_effort
from app.study.errors import StudyNotFoundError, StudyValidationError
from app.study.progress import ProgressService

from .access_helpers import _get_notifier, _resolve_user_id
from .study_models import (
    ProgressSnapshotResponse,
    ProgressStatsListResponse,
    RecordProgressRequest,
    RecordProgressResponse,
    ResetProgressResponse,
    progress_entry_as_response,
    progress_stats_as_response,
)

router = APIRouter(prefix="/user-progress", tags=["user-progress"])


@router.post("", response_model=RecordProgressResponse)
async def record_progress(
    payload: RecordProgressRequest,
    request: Request,
) -> RecordProgressResponse:
    user_id = _resolve_user_id(request)
    try:
        async with SessionLocal.begin() as session:
            progress = await ProgressService.record_answer(
                session,
                user_id=user_id,
                question_set_id=payload.question_set_id,
                question_id=payload.question_id,
                is_correct=payload.is_correct,
                time_spent=payload.time_spent,
            )
            stats = await ProgressService.get_set_stats(
                session,
                user_id=user_id,
                question_set_id=payload.question_set_id,
            )
    except StudyNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_QUESTION_NOT_FOUND"}) from exc
    except StudyValidationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_VALIDATION_FAILED"}) from exc

    stats_response = progress_stats_as_response(stats)
    await publish_best_effort(
        _get_notifier(request),
        user_id=user_id,
        event=EVENT_PROGRESS_UPDATE,
        payload=stats_response.model_dump(mode="json", by_alias=True),
    )
    return RecordProgressResponse(
        progress=progress_entry_as_response(progress),
        stats=stats_response,
    )


@router.get("/stats", response_model=ProgressStatsListResponse)
async def get_all_stats(request: Request) -> ProgressStatsListResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        stats = await ProgressService.get_all_stats(session, user_id=user_id)
    return ProgressStatsListResponse(stats=[progress_stats_as_response(item) for item in stats])


@router.get("/{target_user_id}/{question_set_id}", response_model=ProgressSnapshotResponse)
async def get_progress(
    target_user_id: UUID,
    question_set_id: UUID,
    request: Request,
) -> ProgressSnapshotResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        if target_user_id != user_id:
            caller = await UsersRepo.get_by_id(session, user_id)
            if caller is None or not caller.is_admin:
                raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
        snapshot = await ProgressService.get_snapshot(
            session,
            user_id=target_user_id,
            question_set_id=question_set_id,
        )
    return ProgressSnapshotResponse(
        user_id=target_user_id,
        stats=progress_stats_as_response(snapshot.stats),
        entries=[progress_entry_as_response(entry) for entry in snapshot.entries],
    )


@router.delete("/{question_set_id}", response_model=ResetProgressResponse)
async def reset_progress(question_set_id: UUID, request: Request) -> ResetProgressResponse:
    user_id = _resolve_user_id(request)
    async with SessionLocal.begin() as session:
        deleted = await ProgressService.reset_progress(
            session,
            user_id=user_id,
            question_set_id=question_set_id,
        )
    return ResetProgressResponse(question_set_id=question_set_id, deleted=deleted)
