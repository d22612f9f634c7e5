from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StreamService(BaseModel):
    id: str
    cached: bool = False


class Stream(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = "Torrlink"
    title: str = ""
    type: str = "p2p"
    url: Optional[str] = None
    external_url: Optional[str] = Field(default=None, alias="externalUrl")
    info_hash: Optional[str] = Field(default=None, alias="infoHash")
    file_idx: Optional[int] = Field(default=None, alias="fileIdx")
    filename: Optional[str] = None
    sources: list[str] = []
    service: Optional[StreamService] = None


class StreamResponse(BaseModel):
    streams: list[Stream]
    error: Optional[str] = None
