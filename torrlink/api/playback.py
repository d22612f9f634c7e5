import os
from base64 import urlsafe_b64encode
from typing import Annotated, Any, Optional

import structlog
from fastapi import APIRouter, HTTPException, Path, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.status import HTTP_202_ACCEPTED, HTTP_302_FOUND

from torrlink import config
from torrlink.config import ResolverSettings, UserConfig
from torrlink.converter import StreamConverter
from torrlink.database import db
from torrlink.database.lock import RedisLock
from torrlink.errors import TorrlinkError
from torrlink.gateway.providers import get_provider, list_providers
from torrlink.models import PlaybackMetadata, PlaybackRequest
from torrlink.resolver import PlaybackResolver
from torrlink.stremio import StreamResponse

router = APIRouter()

log = structlog.get_logger(__name__)

FORWARD_ORIGIN_IP = os.environ.get("FORWARD_ORIGIN_IP", "false").lower() == "true"
ORIGIN_IP_HEADER = os.environ.get("ORIGIN_IP_HEADER") or "X-Forwarded-For"

SETTINGS = ResolverSettings.from_env()


def get_source_ip(request: Request) -> str:
    if request.client and FORWARD_ORIGIN_IP:
        return request.headers.get(ORIGIN_IP_HEADER, request.client.host).split(",")[0]
    return request.client.host if request.client else ""


def user_config_or_400(b64config: str) -> UserConfig:
    try:
        return config.parse_config(b64config)
    except TorrlinkError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e


def get_resolver(user_config: UserConfig, source_ip: str) -> PlaybackResolver:
    gateway = get_provider(user_config, SETTINGS)
    if not gateway:
        raise HTTPException(status_code=400, detail="No gateway configured")
    return PlaybackResolver(
        gateway=gateway,
        cache=db.RedisCache(),
        lock=RedisLock(lambda: db.redis),
        settings=SETTINGS,
        requester=source_ip,
    )


@router.get("/manifest.json")
async def get_manifest_with_config() -> dict[str, Any]:
    default_config = urlsafe_b64encode(UserConfig.defaults().model_dump_json().encode()).decode()
    return await get_manifest(b64config=default_config)


@router.get("/{b64config:str}/manifest.json")
async def get_manifest(b64config: str) -> dict[str, Any]:
    user_config = user_config_or_400(b64config)
    return {
        "id": config.APP_ID,
        "version": config.VERSION.removeprefix("v"),
        "name": config.APP_NAME,
        "description": "Play torrents through your own TorrServer.",
        "catalogs": [],
        "resources": ["stream"],
        "types": ["movie", "series"],
        "idPrefixes": ["tt"],
        "behaviorHints": {
            "configurable": True,
            "configurationRequired": user_config.gateway() is None,
        },
        "services": list_providers(),
    }


@router.get("/{b64config:str}/playback/{info_hash:str}/{filename:str}")
async def get_playback(
    request: Request,
    b64config: str,
    info_hash: Annotated[str, Path(description="Torrent info hash")],
    filename: Annotated[str, Path(description="Requested file name")],
    season: Annotated[Optional[int], Query()] = None,
    episode: Annotated[Optional[int], Query()] = None,
    absolute_episode: Annotated[Optional[int], Query()] = None,
    file_idx: Annotated[Optional[int], Query(description="Index of the file to play")] = None,
    file_name: Annotated[Optional[str], Query(description="Path of the file to play")] = None,
    tr: Annotated[list[str], Query(description="Tracker URIs")] = [],
    wait: Annotated[bool, Query(description="Wait for the torrent to be ready")] = True,
):
    user_config = user_config_or_400(b64config)
    try:
        playback = PlaybackRequest(
            info_hash=info_hash,
            sources=tr,
            metadata=PlaybackMetadata(
                season=season,
                episode=episode,
                absolute_episode=absolute_episode,
            ),
            file_name=file_name,
            file_index=file_idx,
            filename=filename,
            wait=wait,
        )
        resolver = get_resolver(user_config, get_source_ip(request))
        url: Optional[str] = await resolver.resolve(playback)
    except TorrlinkError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    if not url:
        return JSONResponse(
            status_code=HTTP_202_ACCEPTED,
            content={"status": "not_ready", "info_hash": playback.info_hash},
        )
    return RedirectResponse(url=url, status_code=HTTP_302_FOUND)


@router.post("/{b64config:str}/convert", response_model_exclude_none=True)
async def convert_streams(b64config: str, streams: StreamResponse) -> StreamResponse:
    user_config = user_config_or_400(b64config)
    converter = StreamConverter(user_config.gateway())
    return StreamResponse(streams=converter.convert(streams.streams), error=streams.error)
