from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from app.api.routes.health import router as health_router
from app.api.routes.internal_purchases import router as internal_purchases_router
from app.api.routes.purchases import router as purchases_router
from app.api.routes.question_sets import router as question_sets_router
from app.api.routes.redeem_codes import router as redeem_codes_router
from app.api.routes.user_progress import router as user_progress_router
from app.api.routes.wrong_answers import router as wrong_answers_router
from app.core.config import get_settings
from app.core.errors import TransientPersistenceError
from app.core.logging import configure_logging
from app.services.notifications import RedisNotifier

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    notifier = RedisNotifier.from_settings()
    app.state.notifier = notifier
    try:
        yield
    finally:
        await notifier.close()


async def _persistence_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning(
        "persistence_unavailable",
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return JSONResponse(status_code=503, content={"detail": {"code": "E_PERSISTENCE_UNAVAILABLE"}})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_request_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": {"code": "E_INTERNAL"}})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    docs_enabled = bool(getattr(settings, "enable_openapi_docs", True))

    app = FastAPI(
        title="Question Bank API",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.add_exception_handler(TransientPersistenceError, _persistence_unavailable_handler)
    app.add_exception_handler(OperationalError, _persistence_unavailable_handler)
    app.add_exception_handler(InterfaceError, _persistence_unavailable_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(health_router)
    app.include_router(redeem_codes_router)
    app.include_router(purchases_router)
    app.include_router(internal_purchases_router)
    app.include_router(question_sets_router)
    app.include_router(user_progress_router)
    app.include_router(wrong_answers_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
