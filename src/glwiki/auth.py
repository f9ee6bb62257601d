"""Stored GitLab credentials.

Credentials are kept in the durable store and revalidated against
``GET /user`` whenever they are restored.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from glwiki.config import DEFAULT_GITLAB_URL
from glwiki.sources.gitlab import GitLabClient
from glwiki.store.base import KeyValueStore

logger = logging.getLogger(__name__)

AUTH_STORAGE_KEY = "gitlab-wiki-auth"

ClientFactory = Callable[[str, str], GitLabClient]


def _default_client(token: str, gitlab_url: str) -> GitLabClient:
    return GitLabClient(token=token, gitlab_url=gitlab_url)


@dataclass
class Credentials:
    """A personal access token and the instance it belongs to."""

    token: str
    gitlab_url: str = DEFAULT_GITLAB_URL


class AuthManager:
    """Login, logout and credential restore."""

    def __init__(
        self,
        store: KeyValueStore,
        session_store: KeyValueStore,
        client_factory: ClientFactory = _default_client,
    ) -> None:
        self.store = store
        self.session_store = session_store
        self.client_factory = client_factory

    def stored_credentials(self) -> Optional[Credentials]:
        raw = self.store.get(AUTH_STORAGE_KEY)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return Credentials(token=data["token"], gitlab_url=data.get("gitlab_url") or DEFAULT_GITLAB_URL)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Removing unreadable stored credentials: %s", e)
            self.store.remove(AUTH_STORAGE_KEY)
            return None

    def login(self, token: str, gitlab_url: str = DEFAULT_GITLAB_URL) -> bool:
        """Validate ``token`` and store it when GitLab accepts it."""
        with self.client_factory(token, gitlab_url) as client:
            if not client.validate_token():
                return False
        self.store.set(AUTH_STORAGE_KEY, json.dumps(asdict(Credentials(token, gitlab_url))))
        logger.info("Logged in to %s", gitlab_url)
        return True

    def restore(self, validate: bool = True) -> Optional[GitLabClient]:
        """Client for the stored credentials, or None when absent or rejected.

        With ``validate=False`` the token is trusted without a round trip;
        a revoked token then surfaces as a ``FetchError`` on first use.
        """
        credentials = self.stored_credentials()
        if credentials is None:
            return None

        client = self.client_factory(credentials.token, credentials.gitlab_url)
        if not validate or client.validate_token():
            return client

        client.close()
        logger.info("Stored token was rejected; removing it")
        self.store.remove(AUTH_STORAGE_KEY)
        return None

    def logout(self) -> None:
        """Forget the credentials and end the session."""
        self.store.remove(AUTH_STORAGE_KEY)
        self.session_store.clear()
