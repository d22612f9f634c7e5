import os
from datetime import timedelta
from typing import Any, Optional

import redis as redis_client
import structlog
from prometheus_client import Histogram
from redislite.client import StrictRedis

from torrlink import instrumentation

log = structlog.get_logger(__name__)


DB_PATH = os.environ.get("DB_PATH", "torrlink.db")
REDIS_URL = os.environ.get("REDIS_URL", "")
REDIS_FLAGS: dict[str, Any] = {"socket_timeout": 3.0, "socket_connect_timeout": 3.0}
redis: redis_client.StrictRedis = (
    redis_client.StrictRedis.from_url(REDIS_URL, **REDIS_FLAGS)
    if REDIS_URL
    else StrictRedis(DB_PATH, **REDIS_FLAGS)
)

REQUEST_DURATION = Histogram(
    name="redis_command_duration_seconds",
    documentation="Duration of Redis requests in seconds",
    labelnames=["command"],
    registry=instrumentation.registry(),
)


@REQUEST_DURATION.labels("PING").time()
async def ping() -> bool:
    redis.ping()
    return True


async def get(key: str) -> Optional[str]:
    result = await _get(key)
    log.debug("cache hit" if result else "cache miss", key=key)
    return result


@REQUEST_DURATION.labels("GET").time()
async def _get(key: str) -> Optional[str]:
    try:
        if res := redis.get(key):
            return res.decode("utf-8")
        return None
    except Exception as e:
        log.error("failed to get cache", key=key, exc_info=e)
        return None


@REQUEST_DURATION.labels("SET").time()
async def set(key: str, value: str, ttl: timedelta | None = None) -> bool:
    try:
        # TTL is sometimes already expired such as timedelta(0) but redis doesn't like that
        return bool(redis.set(key, value, ex=ttl or None))
    except Exception as e:
        log.error("failed to set cache", key=key, exc_info=e)
        return False


@REQUEST_DURATION.labels("TTL").time()
async def ttl(key: str) -> int:
    return redis.ttl(key)


class RedisCache:
    """
    Key-value cache backed by the module level redis connection. The
    connection is looked up on every call so tests can swap `db.redis`.
    """

    async def get(self, key: str) -> Optional[str]:
        return await get(key)

    async def set(self, key: str, value: str, ttl: timedelta) -> bool:
        return await set(key, value, ttl=ttl)


if REDIS_URL:
    log.info("connected to redis", host=REDIS_URL)
else:
    log.info("running with local redis", storage=DB_PATH)
