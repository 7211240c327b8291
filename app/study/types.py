from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from app.db.models.user_progress import UserProgress


@dataclass(slots=True)
class ProgressStats:
    question_set_id: UUID
    answered: int
    correct: int
    accuracy: float
    total_time_spent: int
    average_time_spent: float


@dataclass(slots=True)
class ProgressSnapshot:
    stats: ProgressStats
    entries: list[UserProgress]
