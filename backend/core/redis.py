from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Dict

import redis
from django.conf import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_redis_client() -> "redis.Redis":
    """
    Return a Redis client configured from settings.REDIS_URL.
    Safe to call from views and Celery tasks.
    """
    url = getattr(settings, "REDIS_URL", None)
    if not url:
        raise RuntimeError("REDIS_URL is not configured")
    return redis.Redis.from_url(url)


def publish_event(topic: str, payload: Dict[str, Any]) -> int | None:
    """
    Publish a JSON payload on a Redis pub/sub channel.

    - topic: channel name, e.g. "booking:state-change"
    - payload: JSON-serializable dict (non-JSON values are stringified)

    Returns the number of subscribers that received the message, or None on error.
    Publishing never raises; callers treat events as best-effort.
    """
    try:
        message = json.dumps(payload or {}, separators=(",", ":"), default=str)
        client = get_redis_client()
        return int(client.publish(topic, message))
    except Exception:
        logger.warning("events: failed to publish on topic=%s", topic, exc_info=True)
        return None
