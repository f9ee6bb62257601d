"""Remote project/group sources."""

from .base import ProjectSource
from .gitlab import GitLabClient, RateLimitInfo, normalize_api_url

__all__ = [
    "GitLabClient",
    "ProjectSource",
    "RateLimitInfo",
    "normalize_api_url",
]
