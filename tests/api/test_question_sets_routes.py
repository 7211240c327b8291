from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

from fastapi.testclient import TestClient

from app.api.routes import access_helpers, question_sets
from app.catalog.errors import CatalogQuestionSetNotFoundError
from app.catalog.service import CatalogService
from app.catalog.types import QuestionListing
from app.db.repo.users_repo import UsersRepo
from app.main import app
from tests.helpers import NOW_UTC, DummySessionLocal, make_question_set

GATEWAY_TOKEN = "gateway-secret"


def _auth_headers(user_id) -> dict[str, str]:
    return {"X-Gateway-Token": GATEWAY_TOKEN, "X-User-Id": str(user_id)}


def _prepare(monkeypatch) -> None:
    monkeypatch.setattr(
        access_helpers,
        "get_settings",
        lambda: SimpleNamespace(gateway_token=GATEWAY_TOKEN),
    )
    monkeypatch.setattr(question_sets, "SessionLocal", DummySessionLocal())


def _question(question_set_id, order_index: int) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        question_set_id=question_set_id,
        question_text=f"Question {order_index}",
        question_type="SINGLE",
        options=[{"id": "a", "text": "yes"}, {"id": "b", "text": "no"}],
        correct_options=["a"],
        explanation=None,
        order_index=order_index,
        created_at=NOW_UTC,
    )


def test_list_questions_reports_trial_mode(monkeypatch) -> None:
    _prepare(monkeypatch)
    question_set = make_question_set(trial_questions=1)

    async def _list_questions(session, *, user_id, question_set_id):
        return QuestionListing(
            question_set=question_set,
            questions=[_question(question_set.id, 0)],
            has_access=False,
            trial_only=True,
        )

    monkeypatch.setattr(CatalogService, "list_questions", _list_questions)
    client = TestClient(app)

    response = client.get(
        f"/question-sets/{question_set.id}/questions",
        headers=_auth_headers(uuid4()),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["trialOnly"] is True
    assert body["hasAccess"] is False
    assert body["questions"][0]["questionText"] == "Question 0"
    assert body["questions"][0]["correctOptions"] == ["a"]


def test_get_unknown_question_set(monkeypatch) -> None:
    _prepare(monkeypatch)

    async def _get(session, *, question_set_id):
        raise CatalogQuestionSetNotFoundError

    monkeypatch.setattr(CatalogService, "get_question_set", _get)
    client = TestClient(app)

    response = client.get(f"/question-sets/{uuid4()}", headers=_auth_headers(uuid4()))

    assert response.status_code == 404
    assert response.json() == {"detail": {"code": "E_QUESTION_SET_NOT_FOUND"}}


def test_create_question_set_requires_admin(monkeypatch) -> None:
    _prepare(monkeypatch)

    async def _get_by_id(session, user_id):
        return SimpleNamespace(id=user_id, is_admin=False)

    monkeypatch.setattr(UsersRepo, "get_by_id", _get_by_id)
    client = TestClient(app)

    response = client.post(
        "/question-sets",
        json={"title": "CCNA", "category": "networking", "isPaid": True, "price": "19.00"},
        headers=_auth_headers(uuid4()),
    )

    assert response.status_code == 403
