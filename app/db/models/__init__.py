from app.db.models.base import Base
from app.db.models.purchases import Purchase
from app.db.models.question_sets import QuestionSet
from app.db.models.questions import Question
from app.db.models.redeem_codes import RedeemCode
from app.db.models.user_progress import UserProgress
from app.db.models.users import User
from app.db.models.wrong_answers import WrongAnswer

__all__ = [
    "Base",
    "Purchase",
    "Question",
    "QuestionSet",
    "RedeemCode",
    "User",
    "UserProgress",
    "WrongAnswer",
]
