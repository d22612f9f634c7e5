from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from torrlink import magnet


class PlaybackType(str, Enum):
    torrent = "torrent"
    usenet = "usenet"


class PlaybackMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    season: Optional[int] = None
    episode: Optional[int] = None
    absolute_episode: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.season is None and self.episode is None and self.absolute_episode is None

    def key(self) -> str:
        return ":".join(
            "" if v is None else str(v) for v in (self.season, self.episode, self.absolute_episode)
        )


class PlaybackRequest(BaseModel):
    """
    A request to turn a torrent into a playable gateway URL.

    `file_name` and `file_index` are explicit hints about which file inside
    the torrent to play. `filename` is the name the caller expects, used to
    break ties between several matching files. With `wait` the resolver polls
    the gateway until the torrent is ready instead of answering "not ready".
    """

    model_config = ConfigDict(frozen=True)

    info_hash: str
    sources: tuple[str, ...] = ()
    metadata: PlaybackMetadata = Field(default_factory=PlaybackMetadata)
    file_name: Optional[str] = None
    file_index: Optional[int] = None
    filename: str = ""
    wait: bool = True
    type: PlaybackType = PlaybackType.torrent

    @field_validator("info_hash", mode="before")
    @classmethod
    def normalize_hash(cls: Any, v: Any):
        if isinstance(v, str):
            return magnet.normalize_info_hash(v)
        return v

    @field_validator("sources", mode="before")
    @classmethod
    def sources_as_tuple(cls: Any, v: Any):
        if v is None:
            return ()
        return tuple(v)

    def magnet_link(self) -> str:
        return magnet.make_magnet_link(self.info_hash, list(self.sources))
