import posixpath
from typing import Any, Optional

import PTN
import structlog
from pydantic import BaseModel, field_validator

from torrlink import human

log = structlog.get_logger(__name__)


class FileMeta(BaseModel):
    """
    What could be parsed out of a single file name inside a torrent.
    """

    title: str = ""
    seasons: set[int] = set()
    episodes: set[int] = set()
    year: Optional[int] = None

    @field_validator("seasons", "episodes", mode="before")
    @classmethod
    def ensure_is_set(cls: Any, v: Any):
        if v is None:
            return set()
        if isinstance(v, int):
            return {v}
        if isinstance(v, str):
            return {int(v)} if v.isdigit() else set()
        return {int(i) for i in v}

    @field_validator("year", mode="before")
    @classmethod
    def first_year(cls: Any, v: Any):
        if isinstance(v, list):
            return v[0] if v else None
        return v

    @staticmethod
    def parse_title(path: str) -> "FileMeta":
        name: str = posixpath.basename(path.replace("\\", "/"))
        meta: dict[Any, Any] = PTN.parse(name, standardise=True)
        episodes = meta.get("episode")
        if episodes is None and meta.get("season") is None:
            # anime style releases only carry an absolute number
            episodes = human.find_absolute_episode(name)
        return FileMeta(
            title=meta.get("title") or "",
            seasons=meta.get("season"),
            episodes=episodes,
            year=meta.get("year"),
        )

    def matches(
        self,
        season: Optional[int] = None,
        episode: Optional[int] = None,
        absolute_episode: Optional[int] = None,
    ) -> bool:
        if absolute_episode is not None and not self.seasons and absolute_episode in self.episodes:
            return True
        if episode is None:
            # a season without an episode can't pick a single file
            return season is None and absolute_episode is None
        if season is not None and self.seasons and season not in self.seasons:
            return False
        return episode in self.episodes


def parse_files(paths: list[str]) -> dict[str, FileMeta]:
    """
    Parse every path, skipping the ones the title parser chokes on.
    """
    parsed: dict[str, FileMeta] = {}
    for path in paths:
        if not path:
            continue
        try:
            parsed[path] = FileMeta.parse_title(path)
        except Exception as e:
            log.debug("failed to parse file name", path=path, error=str(e))
            continue
    return parsed
