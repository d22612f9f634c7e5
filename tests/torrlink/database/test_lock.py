import asyncio
import unittest

from redislite.client import StrictRedis

from torrlink.database import db
from torrlink.database.lock import AsyncLockManager, RedisLock
from torrlink.errors import LockTimeout


class TestRedisLock(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        db.redis = StrictRedis()
        self.assertTrue(db.redis.ping())
        self.lock = RedisLock(lambda: db.redis)

    async def asyncTearDown(self):
        db.redis.flushall()

    async def test_returns_result_and_releases(self):
        async def work():
            self.assertIsNotNone(db.redis.get("lock:job"))
            return 42

        result = await self.lock.with_lock("job", work, acquisition_timeout=1, ttl=5)
        self.assertEqual(result, 42)
        self.assertIsNone(db.redis.get("lock:job"))

    async def test_releases_on_error(self):
        async def work():
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            await self.lock.with_lock("job", work, acquisition_timeout=1, ttl=5)
        self.assertIsNone(db.redis.get("lock:job"))

    async def test_times_out_while_held(self):
        db.redis.set("lock:job", "someone-else", px=5000)

        async def work():
            return True

        with self.assertRaises(LockTimeout):
            await self.lock.with_lock("job", work, acquisition_timeout=0.2, ttl=5)
        # the other holder keeps its lock
        self.assertEqual(db.redis.get("lock:job"), b"someone-else")

    async def test_ttl_expiry_frees_a_stalled_holder(self):
        db.redis.set("lock:job", "crashed-holder", px=100)

        async def work():
            return "ran"

        result = await self.lock.with_lock("job", work, acquisition_timeout=2, ttl=5)
        self.assertEqual(result, "ran")

    async def test_does_not_release_someone_elses_lock(self):
        manager = AsyncLockManager(db.redis, "lock:job", timeout=1, ttl=5)
        async with manager:
            # our key expired and another holder took over
            db.redis.set("lock:job", "new-holder")
        self.assertEqual(db.redis.get("lock:job"), b"new-holder")

    async def test_serializes_critical_sections(self):
        running = 0
        overlaps = 0

        async def work():
            nonlocal running, overlaps
            running += 1
            if running > 1:
                overlaps += 1
            await asyncio.sleep(0.05)
            running -= 1

        await asyncio.gather(
            *[self.lock.with_lock("job", work, acquisition_timeout=5, ttl=5) for _ in range(3)]
        )
        self.assertEqual(overlaps, 0)
