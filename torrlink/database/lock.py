import asyncio
from time import monotonic
from typing import Awaitable, Callable, TypeVar
from uuid import uuid4

import structlog
from redis import StrictRedis

from torrlink.errors import LockTimeout

log = structlog.get_logger(__name__)

T = TypeVar("T")

# delete the key only if we still own it
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class AsyncLockManager:
    """
    Best effort mutual exclusion across processes sharing one redis.

    The key expires after `ttl` seconds so a crashed holder cannot block
    everyone forever. Acquisition gives up after `timeout` seconds.
    """

    def __init__(
        self,
        redis: StrictRedis,
        lock_key: str,
        timeout: float = 30.0,
        ttl: float = 10.0,
        delay: float = 0.05,
    ):
        self.redis = redis
        self.lock_key = lock_key
        self.lock_value = uuid4().hex
        self.timeout = timeout
        self.ttl = ttl
        self.delay = delay

    async def __aenter__(self):
        deadline = monotonic() + self.timeout
        while True:
            acquired = self.redis.set(
                self.lock_key, self.lock_value, nx=True, px=max(int(self.ttl * 1000), 1)
            )
            if acquired:
                log.debug("acquired lock", key=self.lock_key)
                return self
            if monotonic() >= deadline:
                raise LockTimeout(self.lock_key, self.timeout)
            await asyncio.sleep(self.delay)

    async def __aexit__(self, exc_type, exc, tb):
        released = self.redis.eval(RELEASE_SCRIPT, 1, self.lock_key, self.lock_value)
        if not released:
            log.warning("lock expired before release", key=self.lock_key, ttl=self.ttl)


class RedisLock:
    """
    Runs critical sections under an AsyncLockManager. `redis` is a callable
    so the connection is resolved when the lock is taken.
    """

    def __init__(self, redis: Callable[[], StrictRedis], prefix: str = "lock:"):
        self.redis = redis
        self.prefix = prefix

    async def with_lock(
        self,
        key: str,
        critical_section: Callable[[], Awaitable[T]],
        acquisition_timeout: float,
        ttl: float,
    ) -> T:
        manager = AsyncLockManager(
            self.redis(),
            f"{self.prefix}{key}",
            timeout=acquisition_timeout,
            ttl=ttl,
        )
        async with manager:
            return await critical_section()
