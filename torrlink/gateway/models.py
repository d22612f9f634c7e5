from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class RemoteTorrentStatus(str, Enum):
    queued = "queued"
    downloading = "downloading"
    cached = "cached"
    unknown = "unknown"

    @property
    def is_ready(self) -> bool:
        return self is RemoteTorrentStatus.cached


class RemoteFile(BaseModel):
    index: int
    path: str
    size: int = 0


class RemoteTorrent(BaseModel):
    # TorrServer identifies torrents by their hash
    id: Optional[str] = None
    info_hash: str
    name: Optional[str] = None
    size: Optional[int] = None
    status: RemoteTorrentStatus = RemoteTorrentStatus.unknown
    files: list[RemoteFile] = []

    @field_validator("info_hash", mode="before")
    @classmethod
    def lowercase_hash(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v


# TorrServer wire models


class TorrServerFileStat(BaseModel):
    id: int
    path: str
    length: int = 0


class TorrServerTorrent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    hash: str
    title: Optional[str] = None
    size: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("size", "torrent_size")
    )
    stat: Optional[int] = None
    file_stats: Optional[list[TorrServerFileStat]] = None

    @field_validator("size", mode="before")
    @classmethod
    def float_size(cls, v):
        if isinstance(v, float):
            return int(v)
        return v


class TorrServerAddRequest(BaseModel):
    link: str
    title: str
    save: bool = True
