from typing import Optional

import structlog

from torrlink import magnet
from torrlink.config import GatewayConfig
from torrlink.errors import BadRequest
from torrlink.stremio import Stream, StreamService
from torrlink.urls import build_stream_url

log = structlog.get_logger(__name__)

DEFAULT_FILENAME = "video.mkv"


class StreamConverter:
    """
    Rewrites P2P streams into TorrServer stream URLs by templating only. The
    gateway is never contacted, TorrServer fetches the torrent when the URL
    is played.
    """

    def __init__(self, gateway: Optional[GatewayConfig]):
        self.gateway = gateway

    def convertible(self, stream: Stream) -> bool:
        return (
            stream.type == "p2p"
            and bool(stream.info_hash)
            and not stream.url
            and not stream.external_url
        )

    def to_url(self, stream: Stream) -> str:
        if self.gateway is None:
            raise BadRequest("No TorrServer configured")
        return build_stream_url(
            self.gateway,
            link=magnet.make_magnet_link(stream.info_hash or "", stream.sources),
            index=stream.file_idx,
            filename=stream.filename or DEFAULT_FILENAME,
            play=False,
            save=False,
        )

    def convert(self, streams: list[Stream]) -> list[Stream]:
        if not self.gateway:
            return streams

        converted: list[Stream] = []
        for stream in streams:
            if not self.convertible(stream) or not magnet.is_info_hash(stream.info_hash or ""):
                converted.append(stream)
                continue
            converted.append(
                stream.model_copy(
                    update={
                        "url": self.to_url(stream),
                        "type": "debrid",
                        "service": StreamService(id="torrserver", cached=False),
                    }
                )
            )

        count = sum(1 for old, new in zip(streams, converted) if old is not new)
        if count:
            log.info("converted p2p streams to TorrServer playback URLs", count=count)
        return converted
