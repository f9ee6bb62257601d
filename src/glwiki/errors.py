"""Error taxonomy shared by the cache, the GitLab client and the front-ends."""

from typing import Optional


class GlwikiError(Exception):
    """Base class for glwiki errors."""


class FetchError(GlwikiError):
    """Network or auth failure while talking to the GitLab API.

    Always non-fatal: the cached data stays valid and the user can retry.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)


class NotFound(FetchError):
    """The requested resource does not exist (HTTP 404)."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message, status_code=404, url=url)


class CacheCorrupt(GlwikiError):
    """A stored payload could not be decoded; treated as a cache miss."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored value for {key!r} is unreadable: {reason}")
        self.key = key


class StoreError(GlwikiError):
    """The durable store could not be written; previously stored values are kept."""
