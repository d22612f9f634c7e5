import asyncio
from base64 import b64encode
from datetime import datetime
from typing import Any

import aiohttp
import structlog
from pydantic import ValidationError

from torrlink import instrumentation
from torrlink.config import GatewayConfig
from torrlink.errors import UpstreamError
from torrlink.gateway.models import TorrServerAddRequest, TorrServerTorrent
from torrlink.logging import timestamped

log = structlog.get_logger(__name__)


def auth_headers(auth: str | None) -> dict[str, str]:
    if auth and ":" in auth:
        return {"Authorization": f"Basic {b64encode(auth.strip().encode()).decode()}"}
    return {}


def auth_params(auth: str | None) -> dict[str, str]:
    if auth and ":" not in auth and auth.strip():
        return {"apikey": auth.strip()}
    return {}


async def make_request(
    config: GatewayConfig,
    method: str,
    url: str,
    body: dict[str, Any] | None = None,
    timeout: float = 10.0,
) -> Any:
    """
    Call the TorrServer API and return the decoded JSON body.
    Raises UpstreamError for transport errors and non-2xx answers.
    """
    api_url = f"{config.url}{url}"
    start_time = datetime.now()
    status_code: str = "2xx"
    error = False
    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as session, session.request(
            method,
            api_url,
            headers={"Content-Type": "application/json", **auth_headers(config.auth)},
            params=auth_params(config.auth),
            json=body,
        ) as response:
            status_code = f"{response.status//100}xx"
            if response.status not in range(200, 300):
                error = True
                log.error(
                    "Error making request",
                    status=response.status,
                    reason=response.reason,
                    url=api_url,
                    body=await response.text(),
                )
                raise UpstreamError(
                    f"TorrServer request failed: HTTP {response.status}",
                    status=response.status,
                )
            return await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        error = True
        raise UpstreamError("TorrServer request failed", cause=e) from e
    finally:
        instrumentation.HTTP_CLIENT_REQUEST_DURATION.labels(
            client="torrserver",
            method=method,
            url=url,
            error=error,
            status_code=status_code,
        ).observe((datetime.now() - start_time).total_seconds())


@timestamped()
async def list_torrents(config: GatewayConfig, timeout: float = 10.0) -> list[TorrServerTorrent]:
    response = await make_request(config, "GET", "/torrents", timeout=timeout)
    # some versions wrap the list
    torrents = response.get("torrents") if isinstance(response, dict) else response
    if not isinstance(torrents, list):
        log.warning("unexpected torrent listing", response=response)
        return []
    results: list[TorrServerTorrent] = []
    for torrent in torrents:
        try:
            results.append(TorrServerTorrent.model_validate(torrent))
        except ValidationError as e:
            log.warning("skipping malformed torrent", torrent=torrent, exc_info=e)
    return results


@timestamped(["magnet_link"])
async def add_torrent(
    config: GatewayConfig,
    magnet_link: str,
    info_hash: str,
    timeout: float = 10.0,
) -> TorrServerTorrent | None:
    """
    Submit a magnet. Returns whatever torrent state TorrServer echoes back, if
    anything recognisable.
    """
    response = await make_request(
        config,
        "POST",
        "/torrents/add",
        body=TorrServerAddRequest(link=magnet_link, title=info_hash).model_dump(),
        timeout=timeout,
    )
    if not isinstance(response, dict) or "hash" not in response:
        return None
    try:
        return TorrServerTorrent.model_validate(response)
    except ValidationError:
        return None
