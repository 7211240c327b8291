from __future__ import annotations

import os

import pytest
from sqlalchemy import text

from app.core.integration_db_safety import assert_safe_integration_db
from app.db.models import Base
from app.db.session import engine

TRUNCATE_TABLES = (
    "wrong_answers",
    "user_progress",
    "purchases",
    "redeem_codes",
    "questions",
    "question_sets",
    "users",
)

TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(TRUNCATE_TABLES)} CASCADE"


@pytest.fixture(scope="session", autouse=True)
def guard_integration_db_target() -> None:
    if not os.environ.get("DATABASE_URL"):
        pytest.skip("DATABASE_URL must point at a dedicated test database")
    assert_safe_integration_db(str(engine.url))


@pytest.fixture(autouse=True)
async def cleanup_db() -> None:
    # Each test runs on its own event loop; pooled asyncpg connections cannot cross loops.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres is required for integration tests: {exc}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
