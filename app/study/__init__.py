from app.study.progress import ProgressService
from app.study.wrong_answers import WrongAnswerService

__all__ = ["ProgressService", "WrongAnswerService"]
