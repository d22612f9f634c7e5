import re
from urllib.parse import quote

from torrlink.errors import BadRequest

INFO_HASH_PATTERN = re.compile(r"^[a-fA-F0-9]{40}$")
MAGNET_HASH_PATTERN = re.compile(r"btih:([a-fA-F0-9]{40})(?![a-fA-F0-9])", re.IGNORECASE)


def is_info_hash(value: str) -> bool:
    return bool(INFO_HASH_PATTERN.match(value or ""))


def normalize_info_hash(info_hash: str) -> str:
    """
    Info hashes are compared lowercase everywhere in this package.
    """
    value = (info_hash or "").strip()
    if not is_info_hash(value):
        raise BadRequest(f"Invalid info hash: {info_hash}")
    return value.lower()


def parse_magnet_link(uri: str) -> str | None:
    match = MAGNET_HASH_PATTERN.search(uri or "")
    if match:
        return match.group(1).lower()
    return None


def make_magnet_link(info_hash: str, sources: list[str] | None = None) -> str:
    link = f"magnet:?xt=urn:btih:{normalize_info_hash(info_hash)}"
    for tracker in sources or []:
        link += f"&tr={quote(tracker, safe='')}"
    return link
