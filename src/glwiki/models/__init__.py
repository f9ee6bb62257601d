"""Data models for glwiki."""

from .schemas import (
    CacheEntry,
    Group,
    NamespaceKind,
    NamespaceRef,
    Project,
    StoreEntry,
    WikiPage,
    WikiPageContent,
    utcnow,
)

__all__ = [
    "CacheEntry",
    "Group",
    "NamespaceKind",
    "NamespaceRef",
    "Project",
    "StoreEntry",
    "WikiPage",
    "WikiPageContent",
    "utcnow",
]
