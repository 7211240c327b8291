from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Protocol
from uuid import UUID

import structlog
from redis.asyncio import Redis

from app.core.config import Settings, get_settings

logger = structlog.get_logger(__name__)

EVENT_ACCESS_UPDATE = "questionSet:accessUpdate"
EVENT_REDEEM_SUCCESS = "redeem:success"
EVENT_PURCHASE_SUCCESS = "purchase:success"
EVENT_PURCHASE_EXPIRING = "purchase:expiring"
EVENT_PROGRESS_UPDATE = "progress:update"

PUBLISH_TIMEOUT_SECONDS = 2.0


class Notifier(Protocol):
    async def publish(
        self,
        *,
        user_id: UUID,
        event: str,
        payload: Mapping[str, object],
    ) -> None: ...


def build_channel_name(*, prefix: str, user_id: UUID) -> str:
    return f"{prefix}:{user_id}"


def encode_message(*, event: str, payload: Mapping[str, object]) -> str:
    return json.dumps({"event": event, "payload": dict(payload)}, default=str, sort_keys=True)


class RedisNotifier:
    def __init__(self, *, redis_client: Redis, channel_prefix: str) -> None:
        self._redis = redis_client
        self._channel_prefix = channel_prefix

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RedisNotifier:
        resolved = settings or get_settings()
        return cls(
            redis_client=Redis.from_url(
                resolved.redis_url,
                socket_timeout=PUBLISH_TIMEOUT_SECONDS,
                socket_connect_timeout=PUBLISH_TIMEOUT_SECONDS,
            ),
            channel_prefix=resolved.notifications_channel_prefix,
        )

    async def publish(
        self,
        *,
        user_id: UUID,
        event: str,
        payload: Mapping[str, object],
    ) -> None:
        channel = build_channel_name(prefix=self._channel_prefix, user_id=user_id)
        await self._redis.publish(channel, encode_message(event=event, payload=payload))

    async def close(self) -> None:
        await self._redis.aclose()


class NullNotifier:
    async def publish(
        self,
        *,
        user_id: UUID,
        event: str,
        payload: Mapping[str, object],
    ) -> None:
        return None


async def publish_best_effort(
    notifier: Notifier,
    *,
    user_id: UUID,
    event: str,
    payload: Mapping[str, object],
    timeout_seconds: float | None = None,
) -> bool:
    try:
        await asyncio.wait_for(
            notifier.publish(user_id=user_id, event=event, payload=payload),
            timeout=timeout_seconds or PUBLISH_TIMEOUT_SECONDS,
        )
    except Exception as exc:
        logger.warning(
            "notification_publish_failed",
            notify_event=event,
            user_id=str(user_id),
            error_type=type(exc).__name__,
        )
        return False
    return True
