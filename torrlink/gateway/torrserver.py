import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from torrlink import magnet
from torrlink.config import GatewayConfig
from torrlink.errors import BadRequest, UpstreamError
from torrlink.gateway import torrserver_api as api
from torrlink.gateway.models import (
    RemoteFile,
    RemoteTorrent,
    RemoteTorrentStatus,
    TorrServerTorrent,
)

log = structlog.get_logger(__name__)

# TorrServer `stat` values
STAT_LOADED = 0
STAT_DOWNLOADING = 1
STAT_SEEDING = 2


def map_status(stat: Optional[int], stream_while_downloading: bool = True) -> RemoteTorrentStatus:
    """
    TorrServer can serve bytes of a torrent that is still downloading so by
    default every live state counts as cached. With `stream_while_downloading`
    off only a complete torrent is ready.
    """
    if stat not in (STAT_LOADED, STAT_DOWNLOADING, STAT_SEEDING):
        return RemoteTorrentStatus.unknown
    if stream_while_downloading:
        return RemoteTorrentStatus.cached
    if stat == STAT_LOADED:
        return RemoteTorrentStatus.queued
    if stat == STAT_DOWNLOADING:
        return RemoteTorrentStatus.downloading
    return RemoteTorrentStatus.cached


def to_remote_torrent(torrent: TorrServerTorrent, stream_while_downloading: bool) -> RemoteTorrent:
    return RemoteTorrent(
        id=torrent.hash,
        info_hash=torrent.hash,
        name=torrent.title,
        size=torrent.size,
        status=map_status(torrent.stat, stream_while_downloading),
        files=[
            RemoteFile(index=f.id, path=f.path, size=f.length) for f in torrent.file_stats or []
        ],
    )


class TorrServerClient:
    def __init__(
        self,
        config: GatewayConfig,
        stream_while_downloading: bool = True,
        add_delay: float = 1.0,
        timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.stream_while_downloading = stream_while_downloading
        self.add_delay = add_delay
        self.timeout = timeout
        self.sleep = sleep

    def __str__(self) -> str:
        return "TorrServerClient"

    def id(self) -> str:
        return "torrserver"

    def name(self) -> str:
        return "TorrServer"

    async def check(self, magnet_links: list[str]) -> list[RemoteTorrent]:
        """
        TorrServer streams on demand so every valid magnet is reported as
        instantly available.
        """
        results: list[RemoteTorrent] = []
        for link in magnet_links:
            info_hash = magnet.parse_magnet_link(link)
            if not info_hash:
                continue
            results.append(RemoteTorrent(info_hash=info_hash, status=RemoteTorrentStatus.cached))
        return results

    async def list(self) -> list[RemoteTorrent]:
        """
        The current torrent listing. Failures are logged and read as "nothing
        known yet".
        """
        try:
            torrents = await api.list_torrents(self.config, timeout=self.timeout)
        except UpstreamError as e:
            log.error("failed to list torrents", url=self.config.url, exc_info=e)
            return []
        return [to_remote_torrent(t, self.stream_while_downloading) for t in torrents]

    async def find(self, info_hash: str) -> Optional[RemoteTorrent]:
        info_hash = info_hash.lower()
        return next((t for t in await self.list() if t.info_hash == info_hash), None)

    async def add(self, magnet_link: str) -> RemoteTorrent:
        info_hash = magnet.parse_magnet_link(magnet_link)
        if not info_hash:
            raise BadRequest("Invalid magnet link")

        added = await api.add_torrent(
            self.config,
            magnet_link=magnet_link,
            info_hash=info_hash,
            timeout=self.timeout,
        )
        log.info("magnet added to TorrServer", info_hash=info_hash)

        # the torrent shows up in the listing shortly after it is added
        await self.sleep(self.add_delay)
        torrent = await self.find(info_hash)
        if torrent:
            return torrent

        log.debug("added torrent not listed yet", info_hash=info_hash)
        stat = added.stat if added and added.stat is not None else STAT_LOADED
        return RemoteTorrent(
            id=added.hash if added else None,
            info_hash=info_hash,
            name=added.title if added else None,
            status=map_status(stat, self.stream_while_downloading),
        )
