from app.db.repo.purchases_repo import PurchasesRepo
from app.db.repo.question_sets_repo import QuestionSetsRepo
from app.db.repo.redeem_codes_repo import RedeemCodesRepo
from app.db.repo.user_progress_repo import UserProgressRepo
from app.db.repo.users_repo import UsersRepo
from app.db.repo.wrong_answers_repo import WrongAnswersRepo

__all__ = [
    "PurchasesRepo",
    "QuestionSetsRepo",
    "RedeemCodesRepo",
    "UserProgressRepo",
    "UsersRepo",
    "WrongAnswersRepo",
]
