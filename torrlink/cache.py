"""
Cache of resolved playback links.

A key holds either the stream URL or NOT_READY, a marker that the gateway
recently reported the torrent as not ready. The marker lives much shorter
than a URL so the torrent is checked again soon.
"""

from datetime import timedelta
from hashlib import sha256
from typing import Optional, Protocol

import structlog
from prometheus_client import Counter

from torrlink import instrumentation
from torrlink.models import PlaybackRequest

log = structlog.get_logger(__name__)

NOT_READY = "__not_ready__"

CACHE_REQUEST = Counter(
    name="playback_link_cache_request",
    documentation="playback link cache lookups",
    labelnames=["result"],
    registry=instrumentation.registry(),
)


class KeyValueCache(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl: timedelta) -> bool:
        ...


class Keys:
    @staticmethod
    def gateway_scope(gateway_url: str) -> str:
        return sha256(gateway_url.encode()).hexdigest()[:16]

    @staticmethod
    def link(gateway_url: str, request: PlaybackRequest) -> str:
        return ":".join(
            [
                "torrserver:link",
                Keys.gateway_scope(gateway_url),
                request.info_hash,
                request.metadata.key(),
                request.filename,
            ]
        )

    @staticmethod
    def lock(request: PlaybackRequest, requester: str) -> str:
        return f"torrserver:resolve:{request.info_hash}:{request.metadata.key()}:{requester}"


class CachedLink:
    def __init__(self, value: str):
        self.value = value

    @property
    def not_ready(self) -> bool:
        return self.value == NOT_READY

    @property
    def url(self) -> Optional[str]:
        return None if self.not_ready else self.value


class PlaybackLinkCache:
    def __init__(self, cache: KeyValueCache, gateway_url: str):
        self.cache = cache
        self.gateway_url = gateway_url

    def key(self, request: PlaybackRequest) -> str:
        return Keys.link(self.gateway_url, request)

    async def get(self, request: PlaybackRequest) -> Optional[CachedLink]:
        value = await self.cache.get(self.key(request))
        if value is None:
            CACHE_REQUEST.labels(result="miss").inc()
            return None
        entry = CachedLink(value)
        CACHE_REQUEST.labels(result="not_ready" if entry.not_ready else "hit").inc()
        return entry

    async def set_url(self, request: PlaybackRequest, url: str, ttl: timedelta) -> bool:
        return await self.cache.set(self.key(request), url, ttl)

    async def set_not_ready(self, request: PlaybackRequest, ttl: timedelta) -> bool:
        log.debug("caching not ready marker", info_hash=request.info_hash, ttl=ttl)
        return await self.cache.set(self.key(request), NOT_READY, ttl)
