import unittest
from datetime import timedelta

from torrlink import instrumentation
from torrlink.cache import Keys, PlaybackLinkCache
from torrlink.models import PlaybackMetadata, PlaybackRequest

INFO_HASH = "c9e15763f722f23e98a29decdfae341b98d53056"


class MemoryCache:
    def __init__(self):
        self.values = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, ttl):
        self.values[key] = value
        return True


def lookups(result: str) -> float:
    return (
        instrumentation.registry().get_sample_value(
            "playback_link_cache_request_total", {"result": result}
        )
        or 0.0
    )


class TestPlaybackLinkCache(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.links = PlaybackLinkCache(MemoryCache(), "http://ts:8090")
        self.request = PlaybackRequest(
            info_hash=INFO_HASH,
            metadata=PlaybackMetadata(season=1, episode=2),
            filename="Show.S01E02.mkv",
        )

    async def test_counts_each_lookup_once(self):
        before = {r: lookups(r) for r in ("miss", "hit", "not_ready")}

        self.assertIsNone(await self.links.get(self.request))
        await self.links.set_not_ready(self.request, timedelta(seconds=30))
        entry = await self.links.get(self.request)
        assert entry is not None
        self.assertTrue(entry.not_ready)
        self.assertIsNone(entry.url)
        await self.links.set_url(self.request, "http://ts:8090/stream", timedelta(hours=1))
        entry = await self.links.get(self.request)
        assert entry is not None
        self.assertEqual(entry.url, "http://ts:8090/stream")

        for result in ("miss", "hit", "not_ready"):
            self.assertEqual(lookups(result) - before[result], 1.0, result)

    def test_keys(self):
        scope = Keys.gateway_scope("http://ts:8090")
        self.assertEqual(
            Keys.link("http://ts:8090", self.request),
            f"torrserver:link:{scope}:{INFO_HASH}:1:2::Show.S01E02.mkv",
        )
        self.assertNotEqual(scope, Keys.gateway_scope("http://other:8090"))
