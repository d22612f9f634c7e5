import json
import os
from base64 import urlsafe_b64decode
from datetime import timedelta
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from torrlink.errors import BadRequest

log = structlog.get_logger(__name__)

APP_ID = os.getenv("APP_ID", "community.torrlink.addon.stremio")
APP_NAME = os.getenv("APP_NAME", "Torrlink")
BUILD_VERSION: str = os.getenv("BUILD_VERSION", "UNKNOWN")
ENV = os.getenv("ENV", "dev")
HOST: str = os.getenv("LISTEN_HOST", "0.0.0.0")
PORT: int = int(os.getenv("LISTEN_PORT", "8000"))
VERSION = os.getenv("BUILD_VERSION") or "0.0.1"

PLAYBACK_LINK_CACHE_TTL = int(os.getenv("PLAYBACK_LINK_CACHE_TTL") or 3600)
NOT_READY_CACHE_TTL = int(os.getenv("NOT_READY_CACHE_TTL") or 30)
TORRSERVER_ADD_DELAY = float(os.getenv("TORRSERVER_ADD_DELAY") or 1.0)
TORRSERVER_MAX_POLL_ATTEMPTS = int(os.getenv("TORRSERVER_MAX_POLL_ATTEMPTS") or 15)
TORRSERVER_POLL_INTERVAL = float(os.getenv("TORRSERVER_POLL_INTERVAL") or 1.0)
LOCK_TIMEOUT_WAIT = float(os.getenv("LOCK_TIMEOUT_WAIT") or 30)
LOCK_TIMEOUT_NO_WAIT = float(os.getenv("LOCK_TIMEOUT_NO_WAIT") or 5)
LOCK_TTL = float(os.getenv("LOCK_TTL") or 0) or None
STREAM_WHILE_DOWNLOADING = os.getenv("STREAM_WHILE_DOWNLOADING", "true").lower() == "true"
EMPTY_FILES_POLICY = os.getenv("EMPTY_FILES_POLICY", "fail").lower()
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT") or 10)


class EmptyFilesPolicy(str, Enum):
    # raise NoMatchingFile
    fail = "fail"
    # stream index 0 and let the gateway pick
    blind = "blind"


class ResolverSettings(BaseModel):
    """
    Tunables for the resolution coordinator. Defaults come from the environment.
    """

    model_config = ConfigDict(frozen=True)

    link_ttl: timedelta = timedelta(seconds=3600)
    not_ready_ttl: timedelta = timedelta(seconds=30)
    add_delay: float = 1.0
    max_poll_attempts: int = 15
    poll_interval: float = 1.0
    lock_timeout_wait: float = 30.0
    lock_timeout_no_wait: float = 5.0
    # None derives the expiry from the other timings, see lock_expiry
    lock_ttl: float | None = None
    stream_while_downloading: bool = True
    empty_files: EmptyFilesPolicy = EmptyFilesPolicy.fail
    http_timeout: float = 10.0

    @staticmethod
    def from_env() -> "ResolverSettings":
        return ResolverSettings(
            link_ttl=timedelta(seconds=PLAYBACK_LINK_CACHE_TTL),
            not_ready_ttl=timedelta(seconds=NOT_READY_CACHE_TTL),
            add_delay=TORRSERVER_ADD_DELAY,
            max_poll_attempts=TORRSERVER_MAX_POLL_ATTEMPTS,
            poll_interval=TORRSERVER_POLL_INTERVAL,
            lock_timeout_wait=LOCK_TIMEOUT_WAIT,
            lock_timeout_no_wait=LOCK_TIMEOUT_NO_WAIT,
            lock_ttl=LOCK_TTL,
            stream_while_downloading=STREAM_WHILE_DOWNLOADING,
            empty_files=EmptyFilesPolicy(EMPTY_FILES_POLICY),
            http_timeout=HTTP_TIMEOUT,
        )

    def run_budget(self) -> float:
        """
        Worst case seconds spent holding the resolve lock: the add call, the
        settle delay, the listing after it and then every poll round.
        """
        return (
            2 * self.http_timeout
            + self.add_delay
            + self.max_poll_attempts * (self.poll_interval + self.http_timeout)
        )

    def lock_expiry(self) -> float:
        if self.lock_ttl is not None:
            return self.lock_ttl
        return self.run_budget()


class GatewayConfig(BaseModel):
    """
    Connection details for a TorrServer instance. The auth value is either
    `user:password` for Basic auth or a bare API key.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: str = Field(alias="torrserverUrl")
    auth: str | None = Field(default=None, alias="torrserverAuth")

    @field_validator("url", mode="before")
    @classmethod
    def strip_url(cls: Any, v: Any):
        if not isinstance(v, str):
            return v
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"invalid gateway url: {v}")
        return v

    @field_validator("auth", mode="before")
    @classmethod
    def blank_auth_is_none(cls: Any, v: Any):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @staticmethod
    def from_token(token: str) -> "GatewayConfig":
        """
        Parse the JSON credential blob, e.g.
        {"torrserverUrl": "http://ts:8090", "torrserverAuth": "user:pass"}
        """
        try:
            return GatewayConfig.model_validate(json.loads(token))
        except (json.JSONDecodeError, ValidationError) as e:
            raise BadRequest(f"Invalid TorrServer token: {e}") from e


class UserConfig(BaseModel):
    service: str = "torrserver"
    torrserver_url: str = ""
    torrserver_auth: str | None = None

    model_config = ConfigDict(extra="allow")

    def gateway(self) -> GatewayConfig | None:
        if not self.torrserver_url:
            return None
        return GatewayConfig(url=self.torrserver_url, auth=self.torrserver_auth)

    @staticmethod
    def defaults() -> "UserConfig":
        return UserConfig()


def parse_config(b64config: str) -> UserConfig:
    if not b64config:
        return UserConfig.defaults()
    try:
        data = json.loads(urlsafe_b64decode(b64config))
        user_config = UserConfig.model_validate(data)
        # validates the url early so a bad config fails at the edge
        user_config.gateway()
        return user_config
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        log.warning("invalid user config", error=str(e))
        raise BadRequest("Invalid configuration") from e
