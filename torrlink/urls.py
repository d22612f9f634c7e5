from typing import Optional
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from torrlink.config import GatewayConfig


def apply_auth(url: str, auth: Optional[str]) -> str:
    """
    Attach gateway credentials to a stream URL. `user:secret` becomes the URL
    userinfo (split on the first colon only), anything else is an API key
    appended as the last query parameter.
    """
    if not auth or not auth.strip():
        return url
    auth = auth.strip()
    parts = urlsplit(url)
    if ":" in auth:
        username, password = auth.split(":", 1)
        host = parts.netloc.rsplit("@", 1)[-1]
        netloc = f"{quote(username, safe='')}:{quote(password, safe='')}@{host}"
        return urlunsplit(parts._replace(netloc=netloc))
    query = "&".join(q for q in (parts.query, urlencode({"apikey": auth})) if q)
    return urlunsplit(parts._replace(query=query))


def build_stream_url(
    config: GatewayConfig,
    link: str,
    index: Optional[int] = None,
    filename: Optional[str] = None,
    play: bool = True,
    save: bool = True,
) -> str:
    """
    The TorrServer stream endpoint for a torrent. `link` is an info hash or a
    magnet; the hash is preferred once the gateway knows the torrent.
    """
    path = "/stream"
    if filename:
        path = f"{path}/{quote(filename, safe='')}"
    params: list[tuple[str, str]] = [("link", link)]
    if index is not None:
        params.append(("index", str(index)))
    if play:
        params.append(("play", "1"))
    if save:
        params.append(("save", "true"))
    url = f"{config.url}{path}?{urlencode(params, safe=':')}"
    return apply_auth(url, config.auth)
