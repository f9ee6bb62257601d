"""Cached project snapshot and sync policy.

The cache manager is the only writer of the cached project list and the
last-sync timestamp. Both are written in one ``set_many`` call so a sync
either replaces them together or leaves them untouched.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from glwiki.errors import CacheCorrupt, FetchError
from glwiki.models import CacheEntry, Project, utcnow
from glwiki.sources.base import ProjectSource
from glwiki.store.base import KeyValueStore

logger = logging.getLogger(__name__)

PROJECTS_KEY = "glwiki_cached_projects"
LAST_SYNC_KEY = "glwiki_last_sync"


def staleness_label(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Bucket the time since ``timestamp`` into ``< 1 min``, ``N min``, ``N h`` or ``N d``."""
    if timestamp is None:
        return "never"
    now = now or utcnow()
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    seconds = (now - timestamp).total_seconds()
    if seconds < 60:
        return "< 1 min"
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"{minutes} min"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} h"
    return f"{hours // 24} d"


class CacheManager:
    """Owns the cached ``CacheEntry`` and decides when to hit the remote source."""

    def __init__(
        self,
        store: KeyValueStore,
        source: Optional[ProjectSource],
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.source = source
        self.clock = clock
        self.entry = CacheEntry()
        self._inflight: Optional[asyncio.Task] = None

    @property
    def is_syncing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _decode(self, raw_projects: str, raw_synced: Optional[str]) -> CacheEntry:
        try:
            data = json.loads(raw_projects)
            if not isinstance(data, list):
                raise TypeError(f"expected a list, got {type(data).__name__}")
            projects = [Project.model_validate(item) for item in data]
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise CacheCorrupt(PROJECTS_KEY, str(e)) from e

        last_synced_at = None
        if raw_synced:
            try:
                last_synced_at = datetime.fromisoformat(json.loads(raw_synced))
            except (json.JSONDecodeError, TypeError, ValueError) as e:
                raise CacheCorrupt(LAST_SYNC_KEY, str(e)) from e

        return CacheEntry(projects=projects, last_synced_at=last_synced_at)

    def load(self) -> CacheEntry:
        """Read the persisted entry.

        A missing or unreadable entry yields an empty one whose
        ``needs_sync`` is true.
        """
        raw_projects = self.store.get(PROJECTS_KEY)
        if raw_projects is None:
            logger.debug("No cached projects; a sync is needed")
            self.entry = CacheEntry()
            return self.entry

        try:
            self.entry = self._decode(raw_projects, self.store.get(LAST_SYNC_KEY))
        except CacheCorrupt as e:
            logger.warning("%s; treating the cache as empty", e)
            self.entry = CacheEntry(corrupt=True)
        return self.entry

    async def sync(self) -> CacheEntry:
        """Fetch the project list and persist it with the current time.

        A call made while another sync is running joins that sync instead
        of issuing a second request. Cancelling a caller does not cancel the
        sync itself; it still writes its result to the store.

        Raises:
            FetchError: The remote source failed; the previous entry is kept.
            StoreError: The new snapshot could not be written.
        """
        if self.is_syncing:
            logger.debug("Sync already in flight; joining it")
            return await asyncio.shield(self._inflight)

        task = asyncio.ensure_future(self._run_sync())
        task.add_done_callback(self._sync_finished)
        self._inflight = task
        return await asyncio.shield(task)

    def _sync_finished(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Sync finished with %r", task.exception())

    async def _run_sync(self) -> CacheEntry:
        if self.source is None:
            raise FetchError("Not logged in to GitLab")

        projects = await asyncio.to_thread(self.source.list_projects)
        synced_at = self.clock()

        self.store.set_many(
            {
                PROJECTS_KEY: json.dumps([p.model_dump(mode="json") for p in projects]),
                LAST_SYNC_KEY: json.dumps(synced_at.isoformat()),
            }
        )
        self.entry = CacheEntry(projects=projects, last_synced_at=synced_at)
        logger.info("Cached %d projects at %s", len(projects), synced_at.isoformat())
        return self.entry

    def clear(self) -> None:
        """Forget the cached snapshot."""
        self.store.remove(PROJECTS_KEY)
        self.store.remove(LAST_SYNC_KEY)
        self.entry = CacheEntry()

    def staleness(self, now: Optional[datetime] = None) -> str:
        return staleness_label(self.entry.last_synced_at, now or self.clock())
