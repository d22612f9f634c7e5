from typing import Protocol

from torrlink.config import GatewayConfig
from torrlink.gateway.models import RemoteTorrent


class GatewayService(Protocol):
    """
    What the resolver needs from a torrent-to-HTTP gateway.
    """

    config: GatewayConfig

    def id(self) -> str:
        ...

    def name(self) -> str:
        ...

    async def check(self, magnet_links: list[str]) -> list[RemoteTorrent]:
        ...

    async def list(self) -> list[RemoteTorrent]:
        ...

    async def add(self, magnet_link: str) -> RemoteTorrent:
        ...
