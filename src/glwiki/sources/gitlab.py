"""GitLab REST API v4 client.

This module provides:
- Project and group listing for the cache (membership-scoped, capped pages)
- Wiki page listing and content fetch
- Token validation
- Retry with exponential backoff and ``Retry-After`` handling
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from glwiki.config import (
    DEFAULT_GITLAB_URL,
    DEFAULT_GROUP_PAGE_LIMIT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PROJECTS_PER_PAGE,
    DEFAULT_REQUEST_TIMEOUT,
)
from glwiki.errors import FetchError, NotFound
from glwiki.models import Group, Project, WikiPage, WikiPageContent
from glwiki.sources.base import ProjectSource

logger = logging.getLogger(__name__)

API_SUFFIX = "/api/v4"
MAX_PER_PAGE = 100
MAX_RETRY_AFTER = 60.0  # Never sleep longer than this on a 429


def normalize_api_url(gitlab_url: str) -> str:
    """Turn an instance URL into its REST API root.

    ``https://gitlab.example.com`` and ``https://gitlab.example.com/api/v4/``
    both become ``https://gitlab.example.com/api/v4``.
    """
    url = (gitlab_url or DEFAULT_GITLAB_URL).strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    if not url.endswith(API_SUFFIX):
        url = f"{url}{API_SUFFIX}"
    return url


@dataclass
class RateLimitInfo:
    """GitLab rate limit state taken from ``RateLimit-*`` response headers."""

    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: float = 0.0

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> "RateLimitInfo":
        def _int(name: str) -> Optional[int]:
            value = headers.get(name)
            return int(value) if value and value.isdigit() else None

        reset = headers.get("ratelimit-reset")
        return cls(
            limit=_int("ratelimit-limit"),
            remaining=_int("ratelimit-remaining"),
            reset_at=float(reset) if reset and reset.isdigit() else 0.0,
        )

    @property
    def is_exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    @property
    def seconds_until_reset(self) -> float:
        return max(0.0, self.reset_at - time.time())


def _error_message(response: httpx.Response) -> str:
    """Best-effort extraction of GitLab's error text."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(data, dict):
        for key in ("message", "error_description", "error"):
            if data.get(key):
                return str(data[key])
    return response.reason_phrase


class GitLabClient(ProjectSource):
    """Client for the GitLab API authenticated with a personal access token."""

    def __init__(
        self,
        token: Optional[str] = None,
        gitlab_url: str = DEFAULT_GITLAB_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = 1.0,
        projects_per_page: int = DEFAULT_PROJECTS_PER_PAGE,
        group_page_limit: int = DEFAULT_GROUP_PAGE_LIMIT,
    ):
        """Initialize the client.

        Args:
            token: Personal access token sent as ``PRIVATE-TOKEN``.
            gitlab_url: Instance URL, with or without ``/api/v4``.
            timeout: Per-request timeout in seconds.
            max_retries: Retries for connection errors, timeouts and 5xx.
            retry_delay: Base delay between retries (exponential backoff).
            projects_per_page: Page size for the single project page.
            group_page_limit: Maximum number of group pages walked.
        """
        self.token = token
        self.base_url = normalize_api_url(gitlab_url)
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.projects_per_page = min(projects_per_page, MAX_PER_PAGE)
        self.group_page_limit = group_page_limit
        self._client: Optional[httpx.Client] = None
        self._rate_limit = RateLimitInfo()

    @classmethod
    def from_config(cls, config, token: Optional[str] = None) -> "GitLabClient":
        """Build a client from a ``GlwikiConfig``."""
        return cls(
            token=token,
            gitlab_url=config.gitlab_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            projects_per_page=config.projects_per_page,
            group_page_limit=config.group_page_limit,
        )

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Accept": "application/json",
                "User-Agent": "glwiki",
            }
            if self.token:
                headers["PRIVATE-TOKEN"] = self.token
            self._client = httpx.Client(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    @property
    def rate_limit(self) -> RateLimitInfo:
        return self._rate_limit

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "GitLabClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make a request, retrying transient failures.

        Raises:
            FetchError: On transport failure after retries or any non-2xx status.
        """
        for attempt in range(self.max_retries + 1):
            try:
                response = self.client.request(method, url, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                if attempt < self.max_retries:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.info("%s %s failed (%s); retrying in %.1fs", method, url, e, delay)
                    time.sleep(delay)
                    continue
                raise FetchError(f"Could not reach GitLab: {e}", url=url) from e
            except httpx.HTTPError as e:
                raise FetchError(f"Request to GitLab failed: {e}", url=url) from e

            self._rate_limit = RateLimitInfo.from_headers(response.headers)

            if response.status_code == 429 and attempt < self.max_retries:
                retry_after = response.headers.get("retry-after", "")
                wait = float(retry_after) if retry_after.isdigit() else self._rate_limit.seconds_until_reset
                if wait <= MAX_RETRY_AFTER:
                    logger.warning("Rate limited by GitLab; waiting %.0fs", wait)
                    time.sleep(wait)
                    continue

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = self.retry_delay * (2 ** attempt)
                logger.info("%s %s returned %s; retrying in %.1fs", method, url, response.status_code, delay)
                time.sleep(delay)
                continue

            return response

        raise FetchError("Request failed without a response", url=url)

    def get(self, url: str, **kwargs) -> httpx.Response:
        """GET with retry handling; non-2xx responses raise ``FetchError``."""
        response = self._request_with_retry("GET", url, **kwargs)
        if response.status_code == 404:
            raise NotFound(f"Not found: {url}", url=url)
        if response.is_error:
            raise FetchError(
                f"GitLab returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
                url=url,
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from GitLab: {e}", status_code=response.status_code) from e

    def list_projects(self) -> list[Project]:
        """List projects the token is a member of, most recently active first.

        Only the first page is fetched.
        """
        response = self.get(
            "/projects",
            params={
                "membership": "true",
                "per_page": self.projects_per_page,
                "order_by": "last_activity_at",
            },
        )
        data = self._json(response)
        try:
            projects = [Project.model_validate(item) for item in data]
        except (ValidationError, TypeError) as e:
            raise FetchError(f"Unexpected project payload: {e}") from e
        logger.info("Fetched %d projects", len(projects))
        return projects

    def list_groups(self) -> list[Group]:
        """List accessible groups, including subgroups.

        Walks pages of 100 until a short page or ``group_page_limit``.
        """
        groups: list[Group] = []
        page = 1

        while page <= self.group_page_limit:
            response = self.get(
                "/groups",
                params={
                    "per_page": MAX_PER_PAGE,
                    "page": page,
                    "all_available": "false",
                },
            )
            data = self._json(response)
            if not data:
                break

            try:
                groups.extend(Group.model_validate(item) for item in data)
            except (ValidationError, TypeError) as e:
                raise FetchError(f"Unexpected group payload: {e}") from e

            if len(data) < MAX_PER_PAGE:
                break
            page += 1
        else:
            logger.warning("Stopped listing groups at the %d page cap", self.group_page_limit)

        return groups

    def list_wiki_pages(self, project_id: int) -> list[WikiPage]:
        """List a project's wiki pages; a project without a wiki has none."""
        try:
            response = self.get(f"/projects/{project_id}/wikis")
        except NotFound:
            return []
        return [WikiPage.model_validate(item) for item in self._json(response)]

    def get_wiki_page(self, project_id: int, slug: str) -> WikiPageContent:
        """Fetch one wiki page with its content."""
        response = self.get(f"/projects/{project_id}/wikis/{quote(slug, safe='')}")
        return WikiPageContent.model_validate(self._json(response))

    def get_authenticated_user(self) -> dict:
        """Get the token owner's profile."""
        return self._json(self.get("/user"))

    def validate_token(self) -> bool:
        """Check whether the token is accepted; never raises."""
        try:
            self.get_authenticated_user()
            return True
        except FetchError as e:
            logger.info("Token validation failed: %s", e)
            return False
