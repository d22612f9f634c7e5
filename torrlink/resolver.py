import asyncio
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

import structlog

from torrlink import instrumentation
from torrlink.cache import Keys, KeyValueCache, PlaybackLinkCache
from torrlink.config import EmptyFilesPolicy, ResolverSettings
from torrlink.errors import NoMatchingFile, TorrlinkError, Unsupported
from torrlink.gateway.base import GatewayService
from torrlink.gateway.models import RemoteTorrent
from torrlink.models import PlaybackRequest, PlaybackType
from torrlink.selector import select_file
from torrlink.torrent import parse_files
from torrlink.urls import build_stream_url

log = structlog.get_logger(__name__)

T = TypeVar("T")


class DistributedLock(Protocol):
    async def with_lock(
        self,
        key: str,
        critical_section: Callable[[], Awaitable[T]],
        acquisition_timeout: float,
        ttl: float,
    ) -> T:
        ...


class PlaybackResolver:
    """
    Turns a PlaybackRequest into a playable gateway URL.

    Results are cached per content and metadata. Work for one key is
    serialised through the distributed lock so a torrent is only submitted
    once even when several processes ask for it at the same time. `resolve`
    returns None when the torrent is not ready (yet).
    """

    def __init__(
        self,
        gateway: GatewayService,
        cache: KeyValueCache,
        lock: DistributedLock,
        settings: ResolverSettings = ResolverSettings(),
        requester: str = "",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.links = PlaybackLinkCache(cache, gateway.config.url)
        self.lock = lock
        self.settings = settings
        self.requester = requester
        self.sleep = sleep

    async def resolve(self, request: PlaybackRequest) -> Optional[str]:
        if request.type != PlaybackType.torrent:
            raise Unsupported(f"{self.gateway.name()} can't play {request.type.value} content")

        ll = log.bind(info_hash=request.info_hash, wait=request.wait)
        try:
            cached = await self.from_cache(request)
            if cached is not None:
                instrumentation.RESOLVE_TOTAL.labels(outcome="cached").inc()
                return cached or None

            url = await self.lock.with_lock(
                Keys.lock(request, self.requester),
                lambda: self._resolve(request),
                acquisition_timeout=(
                    self.settings.lock_timeout_wait
                    if request.wait
                    else self.settings.lock_timeout_no_wait
                ),
                ttl=self.settings.lock_expiry(),
            )
        except TorrlinkError as e:
            ll.warning("failed to resolve playback link", error=e.message)
            instrumentation.RESOLVE_TOTAL.labels(outcome="error").inc()
            raise

        instrumentation.RESOLVE_TOTAL.labels(outcome="resolved" if url else "not_ready").inc()
        return url

    async def from_cache(self, request: PlaybackRequest) -> Optional[str]:
        """
        The cached URL, "" when the torrent is known not ready and the caller
        won't wait, or None when the full resolution has to run.
        """
        entry = await self.links.get(request)
        if entry is None:
            return None
        if entry.url:
            log.info("cached playback link found", info_hash=request.info_hash)
            return entry.url
        if not request.wait:
            log.info("torrent recently not ready", info_hash=request.info_hash)
            return ""
        return None

    async def _resolve(self, request: PlaybackRequest) -> Optional[str]:
        # whoever held the lock before us may have done the work already
        cached = await self.from_cache(request)
        if cached is not None:
            return cached or None

        torrent: RemoteTorrent = await self.gateway.add(request.magnet_link())
        log.info("submitted torrent", info_hash=request.info_hash, status=torrent.status.value)

        # a torrent that is still fetching its metadata lists no files yet
        if not self.is_playable(torrent):
            await self.links.set_not_ready(request, self.settings.not_ready_ttl)
            if not request.wait:
                return None
            polled = await self.poll(request.info_hash, torrent)
            if polled is None:
                log.info("torrent not ready after polling", info_hash=request.info_hash)
                return None
            torrent = polled

        url = self.build_url(request, torrent)
        await self.links.set_url(request, url, self.settings.link_ttl)
        log.info("resolved playback link", info_hash=request.info_hash)
        return url

    @staticmethod
    def is_playable(torrent: RemoteTorrent) -> bool:
        return torrent.status.is_ready and bool(torrent.files)

    async def poll(self, info_hash: str, torrent: RemoteTorrent) -> Optional[RemoteTorrent]:
        """
        Re-list the gateway until the torrent is ready and lists its files.
        Returns the last ready state seen, or None if it never became ready.
        """
        for attempt in range(self.settings.max_poll_attempts):
            await self.sleep(self.settings.poll_interval)
            found = next(
                (t for t in await self.gateway.list() if t.info_hash == info_hash),
                None,
            )
            if found is None:
                log.debug("torrent not listed", info_hash=info_hash, attempt=attempt)
                continue
            torrent = found
            if self.is_playable(torrent):
                log.debug("torrent ready", info_hash=info_hash, attempt=attempt)
                break
            log.debug(
                "torrent not ready",
                info_hash=info_hash,
                attempt=attempt,
                status=torrent.status.value,
                files=len(torrent.files),
            )
        return torrent if torrent.status.is_ready else None

    def build_url(self, request: PlaybackRequest, torrent: RemoteTorrent) -> str:
        if not torrent.files:
            if self.settings.empty_files == EmptyFilesPolicy.fail:
                raise NoMatchingFile(f"No files found for {request.info_hash}")
            log.warning("no files found, trying blind stream", info_hash=request.info_hash)
            return build_stream_url(self.gateway.config, link=request.info_hash, index=0)

        file = select_file(
            files=torrent.files,
            parsed=parse_files([f.path for f in torrent.files]),
            metadata=request.metadata,
            file_name=request.file_name,
            file_index=request.file_index,
            filename=request.filename or torrent.name or "",
        )
        return build_stream_url(self.gateway.config, link=request.info_hash, index=file.index)
