"""Redis pub/sub — broadcast confirmation delivery outcomes.

Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost. That's fine here: the outcome is also logged, and a client can
always call resend-confirmation. A notifier or admin UI subscribes to
warden:events:confirmation to learn which registrations never got their
code.

Redis is optional: with WARDEN_REDIS_URL empty, init_redis() is never
called and publish_delivery_report() is not wired in.
"""

import json
from typing import Optional

import redis.asyncio as aioredis
import structlog

from warden.domain.models import DeliveryReport
from warden.events.types import (
    CONFIRMATION_CHANNEL,
    CONFIRMATION_DELIVERY_FAILED,
    CONFIRMATION_SENT,
)

logger = structlog.get_logger()

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis(redis_url: str) -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    _redis = aioredis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def encode_report(report: DeliveryReport) -> str:
    event_type = CONFIRMATION_SENT if report.delivered else CONFIRMATION_DELIVERY_FAILED
    return json.dumps({
        "type": event_type,
        "user_id": report.user_id,
        "error": report.error,
    })


async def publish_delivery_report(report: DeliveryReport) -> None:
    """Delivery listener for AuthService — publishes one event per report."""
    try:
        await get_redis().publish(CONFIRMATION_CHANNEL, encode_report(report))
    except (RuntimeError, aioredis.RedisError) as e:
        logger.warning("events.publish_failed", error=str(e), user_id=report.user_id)
