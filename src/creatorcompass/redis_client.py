"""Redis connection pool and event publishing.

Redis is an accelerator here, never a source of truth: every caller must
work with ``redis=None`` and publish failures are logged, not raised.
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from creatorcompass.config import get_settings

logger = logging.getLogger(__name__)

LEVEL_UP_CHANNEL = "pubsub:level_up"
BADGE_EARNED_CHANNEL = "pubsub:badge_earned"

_pool: redis.Redis | None = None


async def init_redis(url: str | None = None) -> redis.Redis:
    """Create the shared client (defaults to CC_REDIS_URL)."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url or get_settings().redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )
    return _pool


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def publish_event(client: Any, channel: str, payload: dict[str, Any]) -> bool:
    """Publish a JSON payload. False when there is no client or the publish failed."""
    if client is None:
        return False
    try:
        await client.publish(channel, json.dumps(payload))
    except Exception:
        logger.warning("Failed to publish to %s", channel, exc_info=True)
        return False
    return True
