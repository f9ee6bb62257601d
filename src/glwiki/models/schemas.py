"""SQLModel schemas for glwiki.

The non-table models mirror the JSON returned by the GitLab REST API v4,
so ``Project.model_validate(payload)`` accepts an API object as-is and
``model_dump(mode="json")`` is what lands in the cache.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import field_validator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class NamespaceKind(str, Enum):
    """Owner type of a GitLab project."""

    USER = "user"  # Personal namespace, never hidden by group filtering
    GROUP = "group"  # Group or subgroup


class NamespaceRef(SQLModel):
    """The namespace a project lives in."""

    id: int
    name: str
    path: str = ""
    kind: NamespaceKind
    full_path: str  # e.g. "org/team/subteam"

    @property
    def is_personal(self) -> bool:
        return self.kind == NamespaceKind.USER

    @property
    def segments(self) -> list[str]:
        """Non-empty ``/``-separated components of ``full_path``."""
        return [part for part in self.full_path.split("/") if part]


class Project(SQLModel):
    """A GitLab project as listed by ``GET /projects``."""

    id: int
    name: str
    description: str = ""
    path_with_namespace: str
    web_url: str
    avatar_url: Optional[str] = None
    namespace: NamespaceRef

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value: Optional[str]) -> str:
        return value or ""

    @property
    def wiki_url(self) -> str:
        return f"{self.web_url.rstrip('/')}/-/wikis"


class Group(SQLModel):
    """A GitLab group or subgroup as listed by ``GET /groups``."""

    id: int
    name: str
    path: str = ""
    full_path: str
    parent_id: Optional[int] = None

    @property
    def depth(self) -> int:
        return self.full_path.count("/")


class WikiPage(SQLModel):
    """Entry of a project's wiki page listing."""

    slug: str
    title: str
    format: str = "markdown"


class WikiPageContent(WikiPage):
    """A wiki page with its raw content."""

    content: str = ""


class CacheEntry(SQLModel):
    """Cached project snapshot and its sync metadata."""

    projects: list[Project] = Field(default_factory=list)
    last_synced_at: Optional[datetime] = None
    corrupt: bool = False  # Stored payload could not be decoded

    @property
    def needs_sync(self) -> bool:
        """True when the cache was never synced (or was unreadable)."""
        return self.last_synced_at is None


class StoreEntry(SQLModel, table=True):
    """One row of the durable key-value store."""

    __tablename__ = "store_entry"

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=utcnow)
