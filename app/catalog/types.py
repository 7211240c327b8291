from __future__ import annotations

from dataclasses import dataclass

from app.db.models.question_sets import QuestionSet
from app.db.models.questions import Question


@dataclass(slots=True)
class QuestionSetDetails:
    question_set: QuestionSet
    question_count: int


@dataclass(slots=True)
class QuestionListing:
    question_set: QuestionSet
    questions: list[Question]
    has_access: bool
    trial_only: bool
