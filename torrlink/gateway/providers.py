from typing import Callable, Optional

from torrlink.config import GatewayConfig, ResolverSettings, UserConfig
from torrlink.gateway.base import GatewayService
from torrlink.gateway.torrserver import TorrServerClient

GatewayFactory = Callable[[GatewayConfig, ResolverSettings], GatewayService]


def torrserver(config: GatewayConfig, settings: ResolverSettings) -> GatewayService:
    return TorrServerClient(
        config=config,
        stream_while_downloading=settings.stream_while_downloading,
        add_delay=settings.add_delay,
        timeout=settings.http_timeout,
    )


_providers: dict[str, GatewayFactory] = {
    "torrserver": torrserver,
}


def list_providers() -> list[str]:
    return sorted(_providers)


def get_provider(user_config: UserConfig, settings: ResolverSettings) -> Optional[GatewayService]:
    factory = _providers.get(user_config.service)
    gateway_config = user_config.gateway()
    if not factory or not gateway_config:
        return None
    return factory(gateway_config, settings)
