from __future__ import annotations

from uuid import UUID

import structlog
from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.repo.users_repo import UsersRepo
from app.services.internal_auth import (
    extract_client_ip,
    extract_gateway_user_id,
    is_client_ip_allowed,
    is_internal_request_authenticated,
)
from app.services.notifications import Notifier, NullNotifier

logger = structlog.get_logger(__name__)


def _resolve_user_id(request: Request) -> UUID:
    user_id = extract_gateway_user_id(request, expected_token=get_settings().gateway_token)
    if user_id is None:
        logger.info("gateway_auth_failed", path=request.url.path)
        raise HTTPException(status_code=401, detail={"code": "E_UNAUTHORIZED"})
    return user_id


async def _require_admin(session: AsyncSession, *, user_id: UUID) -> None:
    user = await UsersRepo.get_by_id(session, user_id)
    if user is None or not user.is_admin:
        logger.warning("admin_access_denied", user_id=str(user_id))
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    client_ip = extract_client_ip(
        request,
        trusted_proxies=settings.internal_api_trusted_proxies,
    )

    if not is_client_ip_allowed(client_ip=client_ip, allowlist=settings.internal_api_allowlist):
        logger.warning("internal_auth_failed", reason="ip_not_allowed", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    if not is_internal_request_authenticated(
        request,
        expected_token=settings.internal_api_token,
    ):
        logger.warning("internal_auth_failed", reason="invalid_credentials", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


def _get_notifier(request: Request) -> Notifier:
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        return NullNotifier()
    return notifier
