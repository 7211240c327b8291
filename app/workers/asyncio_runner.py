from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_job_on_fresh_pool(awaitable: Awaitable[T], *, job_name: str) -> T:
    # Pooled asyncpg connections are bound to the loop that opened them.
    with structlog.contextvars.bound_contextvars(job=job_name):
        await dispose_engine()
        try:
            return await awaitable
        except Exception:
            logger.exception("worker_job_failed")
            raise
        finally:
            await dispose_engine()


def run_async_job(awaitable: Awaitable[T], *, job_name: str) -> T:
    return asyncio.run(_run_job_on_fresh_pool(awaitable, job_name=job_name))
