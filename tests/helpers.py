from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

NOW_UTC = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class DummyNested:
    async def __aenter__(self) -> None:
        return None

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class DummyResult:
    def scalar_one_or_none(self) -> None:
        return None


@dataclass
class DummySession:
    flushed: int = 0
    executed: list[Any] = field(default_factory=list)

    async def execute(self, stmt: Any) -> DummyResult:
        self.executed.append(stmt)
        return DummyResult()

    async def flush(self) -> None:
        self.flushed += 1

    def begin_nested(self) -> DummyNested:
        return DummyNested()


class DummySessionBegin:
    def __init__(self, factory: DummySessionLocal) -> None:
        self._factory = factory

    async def __aenter__(self) -> DummySession:
        if self._factory.enter_error is not None:
            raise self._factory.enter_error
        return self._factory.session

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            if self._factory.commit_error is not None:
                raise self._factory.commit_error
            self._factory.commits += 1
        else:
            self._factory.rollbacks += 1
        return False


@dataclass
class DummySessionLocal:
    session: DummySession = field(default_factory=DummySession)
    enter_error: BaseException | None = None
    commit_error: BaseException | None = None
    commits: int = 0
    rollbacks: int = 0

    def begin(self) -> DummySessionBegin:
        return DummySessionBegin(self)


@dataclass
class RecordingNotifier:
    events: list[tuple[UUID, str, dict[str, Any]]] = field(default_factory=list)
    fail_with: BaseException | None = None

    async def publish(self, *, user_id: UUID, event: str, payload: dict[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append((user_id, event, dict(payload)))

    @property
    def event_names(self) -> list[str]:
        return [event for _, event, _ in self.events]


class HangingNotifier:
    def __init__(self) -> None:
        self.attempts = 0

    async def publish(self, *, user_id: UUID, event: str, payload: dict[str, Any]) -> None:
        self.attempts += 1
        await asyncio.sleep(3600)


def make_question_set(**overrides: Any) -> SimpleNamespace:
    values: dict[str, Any] = {
        "id": uuid4(),
        "title": "Network Fundamentals",
        "description": "Routing and switching basics",
        "category": "networking",
        "icon": None,
        "is_paid": True,
        "price": Decimal("9.99"),
        "trial_questions": 3,
        "is_featured": False,
        "created_at": NOW_UTC,
        "updated_at": NOW_UTC,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def make_redeem_code(**overrides: Any) -> SimpleNamespace:
    values: dict[str, Any] = {
        "id": uuid4(),
        "code": "ABCD2345",
        "question_set_id": uuid4(),
        "validity_days": 30,
        "expiry_date": NOW_UTC,
        "is_used": False,
        "used_by": None,
        "used_at": None,
        "created_by": uuid4(),
        "created_at": NOW_UTC,
        "updated_at": NOW_UTC,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def make_purchase(**overrides: Any) -> SimpleNamespace:
    values: dict[str, Any] = {
        "id": uuid4(),
        "user_id": uuid4(),
        "question_set_id": uuid4(),
        "status": "ACTIVE",
        "amount": Decimal("9.99"),
        "payment_method": "CARD",
        "transaction_id": None,
        "purchase_date": NOW_UTC,
        "expiry_date": NOW_UTC,
        "expiry_reminder_sent_at": None,
        "created_at": NOW_UTC,
        "updated_at": NOW_UTC,
    }
    values.update(overrides)
    return SimpleNamespace(**values)
