import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from chatsync.core.config import get_settings


logger = logging.getLogger(__name__)


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def close(self) -> None:
        return


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    url = get_settings().redis_url
    _bus = RedisBus(url) if url else NoopBus()
    return _bus


async def close_bus() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
        _bus = None


async def notify(bus, user_id: Optional[str], kind: str, text: str, **data: Any) -> None:
    """Publish a transient notification (toast) for one user; never raises."""
    if not user_id or not getattr(bus, "enabled", False):
        return
    payload = json.dumps({"type": "notification", "kind": kind, "text": text, **data})
    try:
        await bus.publish(f"user:{user_id}", payload)
    except Exception as exc:
        logger.warning("Notification to %s not published: %s", user_id, exc)
