from __future__ import annotations

import json
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.services import notifications
from app.services.notifications import (
    EVENT_REDEEM_SUCCESS,
    PUBLISH_TIMEOUT_SECONDS,
    NullNotifier,
    RedisNotifier,
    build_channel_name,
    encode_message,
    publish_best_effort,
)
from tests.helpers import HangingNotifier, RecordingNotifier


class _FakeRedis:
    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []
        self.closed = False

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1

    async def aclose(self) -> None:
        self.closed = True


def test_encode_message_wraps_event_and_payload() -> None:
    user_id = uuid4()
    decoded = json.loads(encode_message(event="x:y", payload={"userId": user_id, "n": 1}))

    assert decoded == {"event": "x:y", "payload": {"userId": str(user_id), "n": 1}}


@pytest.mark.asyncio
async def test_redis_notifier_publishes_to_per_user_channel() -> None:
    fake_redis = _FakeRedis()
    notifier = RedisNotifier(redis_client=fake_redis, channel_prefix="qb:user")
    user_id = uuid4()

    await notifier.publish(user_id=user_id, event=EVENT_REDEEM_SUCCESS, payload={"code": "AB"})
    await notifier.close()

    channel, message = fake_redis.published[0]
    assert channel == build_channel_name(prefix="qb:user", user_id=user_id)
    assert json.loads(message)["event"] == EVENT_REDEEM_SUCCESS
    assert fake_redis.closed is True


@pytest.mark.asyncio
async def test_publish_best_effort_swallows_delivery_errors() -> None:
    failing = RecordingNotifier(fail_with=ConnectionError("redis down"))

    delivered = await publish_best_effort(
        failing,
        user_id=uuid4(),
        event=EVENT_REDEEM_SUCCESS,
        payload={},
    )

    assert delivered is False


@pytest.mark.asyncio
async def test_publish_best_effort_reports_success() -> None:
    assert (
        await publish_best_effort(
            NullNotifier(),
            user_id=uuid4(),
            event=EVENT_REDEEM_SUCCESS,
            payload={},
        )
        is True
    )


@pytest.mark.asyncio
async def test_publish_best_effort_gives_up_on_hanging_delivery() -> None:
    hanging = HangingNotifier()

    delivered = await publish_best_effort(
        hanging,
        user_id=uuid4(),
        event=EVENT_REDEEM_SUCCESS,
        payload={},
        timeout_seconds=0.01,
    )

    assert delivered is False
    assert hanging.attempts == 1


def test_redis_notifier_from_settings_bounds_socket_waits(monkeypatch) -> None:
    captured: dict[str, object] = {}

    def _from_url(url: str, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return _FakeRedis()

    monkeypatch.setattr(notifications.Redis, "from_url", _from_url)

    notifier = RedisNotifier.from_settings(
        SimpleNamespace(redis_url="redis://cache:6379/0", notifications_channel_prefix="qb:user")
    )

    assert isinstance(notifier, RedisNotifier)
    assert captured == {
        "url": "redis://cache:6379/0",
        "socket_timeout": PUBLISH_TIMEOUT_SECONDS,
        "socket_connect_timeout": PUBLISH_TIMEOUT_SECONDS,
    }
