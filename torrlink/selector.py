from typing import Optional

import structlog

from torrlink import human
from torrlink.errors import NoMatchingFile
from torrlink.gateway.models import RemoteFile
from torrlink.models import PlaybackMetadata
from torrlink.torrent import FileMeta

log = structlog.get_logger(__name__)


def by_index(files: list[RemoteFile], index: int) -> Optional[RemoteFile]:
    return next((f for f in files if f.index == index), None)


def by_name(files: list[RemoteFile], file_name: str) -> Optional[RemoteFile]:
    exact = next((f for f in files if f.path == file_name), None)
    if exact:
        return exact
    return next((f for f in files if f.path.replace("\\", "/").split("/")[-1] == file_name), None)


def best_match(candidates: list[RemoteFile], filename: str) -> RemoteFile:
    """
    Prefer the closest name to what the caller asked for, then the biggest
    file. Samples and non-video files lose to anything else.
    """
    return max(
        candidates,
        key=lambda f: (
            human.is_video(f.path) and not human.is_sample(f.path),
            human.name_similarity(filename, f.path),
            f.size,
        ),
    )


def select_file(
    files: list[RemoteFile],
    parsed: dict[str, FileMeta],
    metadata: PlaybackMetadata,
    file_name: Optional[str] = None,
    file_index: Optional[int] = None,
    filename: str = "",
) -> RemoteFile:
    """
    Pick the file to play from a torrent listing.

    Explicit hints win: first `file_index`, then `file_name`. Otherwise the
    files whose parsed season/episode match `metadata` are ranked by
    `best_match`. A single file torrent always yields its only file. Files
    missing from `parsed` only take part in the hint based steps.
    """
    if file_index is not None:
        if file := by_index(files, file_index):
            log.debug("selected file by index", index=file_index)
            return file

    if file_name:
        if file := by_name(files, file_name):
            log.debug("selected file by name", file_name=file_name, index=file.index)
            return file

    matched: list[RemoteFile] = [
        f
        for f in files
        if f.path in parsed
        and parsed[f.path].matches(
            season=metadata.season,
            episode=metadata.episode,
            absolute_episode=metadata.absolute_episode,
        )
    ]
    if metadata.is_empty:
        # movies: only video files are worth playing
        matched = [f for f in matched if human.is_video(f.path)]
    if matched:
        file = best_match(matched, filename)
        log.info(
            "found matched file",
            path=file.path,
            index=file.index,
            size=human.bytes(file.size),
            candidates=len(matched),
            season=metadata.season,
            episode=metadata.episode,
        )
        return file

    if len(files) == 1:
        log.debug("single file torrent")
        return files[0]

    log.info(
        "no file found for metadata",
        season=metadata.season,
        episode=metadata.episode,
        absolute_episode=metadata.absolute_episode,
        files=len(files),
    )
    raise NoMatchingFile("No matching file found in torrent")
