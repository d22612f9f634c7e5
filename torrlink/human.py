import posixpath
import re

import structlog
from rapidfuzz import fuzz

log = structlog.get_logger(__name__)

VIDEO_EXTENSIONS = [
    "3g2",
    "3gp",
    "avi",
    "flv",
    "m2ts",
    "m4v",
    "mk3d",
    "mkv",
    "mov",
    "mp2",
    "mp4",
    "mpe",
    "mpeg",
    "mpg",
    "mpv",
    "ogm",
    "ts",
    "webm",
    "wmv",
]


def bytes(num: float) -> str:
    """
    Get human readable bytes string for bytes
    Example: (1024*5) -> 5K | (1024*1024*5) -> 5M | (1024*1024*1024*5) -> 5G
    """
    for unit in ("", "K", "M"):
        if abs(num) < 1024.0:
            return f"{num:3.2f} {unit}B"
        num /= 1024.0
    return f"{num:.2f} GB"


def is_video(file: str) -> bool:
    return file.rsplit(".", 1)[-1].lower() in VIDEO_EXTENSIONS


def is_sample(file: str) -> bool:
    return bool(re.search(r"\bsample\b", file, re.IGNORECASE))


def find_absolute_episode(file: str) -> int | None:
    """
    Absolute episode numbers as used by anime releases, e.g.
    "[Group] Show - 105 [1080p].mkv"
    """
    match = re.search(r"\s-\s(\d{1,4})(?:v\d)?\b", file)
    if match:
        return int(match.group(1))
    return None


def name_similarity(wanted: str, file: str) -> float:
    """
    How close a file path is to the requested file name, 0.0 to 1.0.
    Only the base name of the path is compared.
    """
    if not wanted or not file:
        return 0.0
    name = posixpath.basename(file.replace("\\", "/"))
    return fuzz.ratio(wanted.lower(), name.lower()) / 100.0
