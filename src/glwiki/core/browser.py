"""Composition of cache, group selection and search into the visible project set."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from glwiki.core.cache import CacheManager
from glwiki.core.filters import filter_active, search
from glwiki.core.selection import GroupSelection
from glwiki.core.tree import GroupTreeNode, build_group_tree, iter_nodes
from glwiki.errors import GlwikiError
from glwiki.models import CacheEntry, Project
from glwiki.sources.base import ProjectSource
from glwiki.store.base import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of a user- or startup-triggered sync."""

    entry: CacheEntry
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        if self.error:
            return f"Sync failed: {self.error} (showing {len(self.entry.projects)} cached projects)"
        return f"Synced {len(self.entry.projects)} projects"


class ProjectBrowser:
    """Reactive view over the cached projects.

    ``visible_projects`` and ``tree`` are recomputed whenever the cache
    contents, the active group selection or the search query change.
    Expanded tree paths are view state only and never persisted.
    """

    def __init__(self, cache: CacheManager, selection: GroupSelection, query: str = "") -> None:
        self.cache = cache
        self.selection = selection
        self.query = query
        self.error: Optional[str] = None
        self.expanded: set[str] = set()
        self._view: Optional[tuple] = None
        self.cache.load()

    @classmethod
    def create(cls, store: KeyValueStore, source: Optional[ProjectSource], query: str = "") -> "ProjectBrowser":
        return cls(CacheManager(store, source), GroupSelection(store), query=query)

    @property
    def entry(self) -> CacheEntry:
        return self.cache.entry

    @property
    def needs_sync(self) -> bool:
        return self.cache.entry.needs_sync

    @property
    def is_syncing(self) -> bool:
        return self.cache.is_syncing

    @property
    def staleness(self) -> str:
        return self.cache.staleness()

    def _recompute(self) -> tuple[list[Project], GroupTreeNode]:
        entry = self.cache.entry
        ids = self.selection.ids
        query = self.query
        view = self._view
        if view is not None and view[0] is entry and view[1:3] == (ids, query):
            return view[3], view[4]
        visible = search(filter_active(entry.projects, ids), query)
        tree = build_group_tree(visible)
        # Swapped in one assignment so readers never see a half-built view
        self._view = (entry, ids, query, visible, tree)
        return visible, tree

    @property
    def visible_projects(self) -> list[Project]:
        return list(self._recompute()[0])

    @property
    def tree(self) -> GroupTreeNode:
        return self._recompute()[1]

    def set_query(self, query: str) -> None:
        self.query = query

    def project_by_id(self, project_id: int) -> Optional[Project]:
        for project in self.cache.entry.projects:
            if project.id == project_id:
                return project
        return None

    # Sync

    async def ensure_loaded(self) -> Optional[SyncResult]:
        """Sync on first use (nothing cached yet); otherwise do nothing."""
        if not self.needs_sync:
            return None
        logger.info("No usable cache; syncing before first render")
        return await self.refresh()

    async def refresh(self) -> SyncResult:
        """User-triggered sync. Failures keep the cached data visible."""
        try:
            entry = await self.cache.sync()
        except GlwikiError as e:
            logger.warning("Sync failed: %s", e)
            self.error = str(e)
            return SyncResult(entry=self.cache.entry, error=self.error)
        self.error = None
        return SyncResult(entry=entry)

    # Expand / collapse

    def is_expanded(self, path: str) -> bool:
        return path in self.expanded

    def toggle_expanded(self, path: str) -> bool:
        """Flip a tree node open or closed; returns the new state."""
        if path in self.expanded:
            self.expanded.discard(path)
            return False
        self.expanded.add(path)
        return True

    def expand_all(self) -> None:
        self.expanded = {node.path for node in iter_nodes(self.tree) if not node.is_root}

    def collapse_all(self) -> None:
        self.expanded.clear()

    # Active groups

    def toggle_group(self, group_id: int) -> bool:
        return self.selection.toggle(group_id)

    def select_all(self, group_ids: Iterable[int]) -> None:
        self.selection.select_all(group_ids)

    def deselect_all(self) -> None:
        self.selection.deselect_all()
