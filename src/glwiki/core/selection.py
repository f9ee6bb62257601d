"""Persisted set of active group ids."""

import json
import logging
from typing import Iterable

from glwiki.store.base import KeyValueStore

logger = logging.getLogger(__name__)

ACTIVE_GROUPS_KEY = "gitlab_active_groups"


class GroupSelection:
    """The groups the user opted into; empty means "show everything".

    Every mutation is written to the store immediately.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._ids: set[int] = self._read()

    def _read(self) -> set[int]:
        raw = self.store.get(ACTIVE_GROUPS_KEY)
        if raw is None:
            return set()
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise TypeError(f"expected a list, got {type(data).__name__}")
            return {int(group_id) for group_id in data}
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable active group selection: %s", e)
            return set()

    def _persist(self) -> None:
        self.store.set(ACTIVE_GROUPS_KEY, json.dumps(sorted(self._ids)))

    @property
    def ids(self) -> frozenset[int]:
        return frozenset(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, group_id: int) -> bool:
        return group_id in self._ids

    def is_active(self, group_id: int) -> bool:
        return group_id in self._ids

    def toggle(self, group_id: int) -> bool:
        """Flip one group; returns whether it is now active."""
        if group_id in self._ids:
            self._ids.discard(group_id)
            active = False
        else:
            self._ids.add(group_id)
            active = True
        self._persist()
        logger.debug("Group %s %s", group_id, "selected" if active else "deselected")
        return active

    def select_all(self, group_ids: Iterable[int]) -> None:
        self._ids = {int(group_id) for group_id in group_ids}
        self._persist()

    def deselect_all(self) -> None:
        self._ids = set()
        self._persist()
