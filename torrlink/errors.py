"""
Errors raised while resolving a playback link. A link that is simply not ready
yet is not an error: the resolver returns None for that case.
"""


class TorrlinkError(Exception):
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequest(TorrlinkError):
    """Malformed info hash, magnet link or configuration."""

    status_code = 400


class UpstreamError(TorrlinkError):
    """The gateway failed to answer or answered with a non-2xx status."""

    status_code = 502
    retryable = True

    def __init__(self, message: str, status: int | None = None, cause: BaseException | None = None):
        super().__init__(message)
        self.status = status
        self.cause = cause


class LockTimeout(UpstreamError):
    status_code = 503

    def __init__(self, key: str, timeout: float):
        super().__init__(f"timed out after {timeout:.1f}s waiting for lock {key}")
        self.key = key
        self.timeout = timeout


class NoMatchingFile(TorrlinkError):
    status_code = 404


class Unsupported(TorrlinkError):
    status_code = 422
