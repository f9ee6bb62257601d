"""Tests for active group selection and the session-scoped selected project."""

import json

from glwiki.core.selection import ACTIVE_GROUPS_KEY, GroupSelection
from glwiki.core.session import (
    SELECTED_PROJECT_KEY,
    forget_project,
    recall_project,
    remember_project,
)
from glwiki.store import MemoryStore

from conftest import build_project


class TestGroupSelection:
    """Tests for GroupSelection."""

    def test_starts_empty(self):
        """Test a fresh store has no active groups."""
        selection = GroupSelection(MemoryStore())
        assert selection.ids == frozenset()
        assert len(selection) == 0

    def test_reads_persisted_ids(self):
        """Test stored ids are loaded and deduplicated."""
        store = MemoryStore({ACTIVE_GROUPS_KEY: json.dumps([3, 1, 3])})
        selection = GroupSelection(store)
        assert selection.ids == {1, 3}
        assert 3 in selection
        assert selection.is_active(1)
        assert not selection.is_active(2)

    def test_toggle_persists_immediately(self):
        """Test each toggle writes the sorted list."""
        store = MemoryStore()
        selection = GroupSelection(store)

        assert selection.toggle(9) is True
        assert selection.toggle(4) is True
        assert json.loads(store.get(ACTIVE_GROUPS_KEY)) == [4, 9]

        assert selection.toggle(9) is False
        assert json.loads(store.get(ACTIVE_GROUPS_KEY)) == [4]
        assert GroupSelection(store).ids == {4}

    def test_select_all_then_deselect_all(self):
        """Test select-all followed by deselect-all persists an empty list."""
        store = MemoryStore()
        selection = GroupSelection(store)
        selection.select_all([42, 43, 44])
        assert json.loads(store.get(ACTIVE_GROUPS_KEY)) == [42, 43, 44]

        selection.deselect_all()
        assert json.loads(store.get(ACTIVE_GROUPS_KEY)) == []
        assert selection.ids == frozenset()

    def test_corrupt_selection_reads_as_empty(self):
        """Test unreadable data is ignored."""
        for raw in ("not json", json.dumps({"a": 1}), json.dumps(["x"])):
            assert GroupSelection(MemoryStore({ACTIVE_GROUPS_KEY: raw})).ids == frozenset()


class TestSelectedProject:
    """Tests for the selected project kept in the session store."""

    def test_remember_and_recall(self):
        """Test a remembered project is recalled by its id."""
        session = MemoryStore()
        project = build_project(5, "acme")
        remember_project(session, project)

        recalled = recall_project(session, 5)
        assert recalled is not None
        assert recalled.id == 5
        assert recalled.namespace.full_path == "acme"

    def test_nothing_remembered(self):
        """Test recalling with an empty session returns None."""
        assert recall_project(MemoryStore(), 5) is None

    def test_mismatched_id_clears_entry(self):
        """Test asking for another project forgets the stored one."""
        session = MemoryStore()
        remember_project(session, build_project(5, "acme"))

        assert recall_project(session, 6) is None
        assert SELECTED_PROJECT_KEY not in session

    def test_corrupt_entry_is_cleared(self):
        """Test unreadable data is removed."""
        session = MemoryStore({SELECTED_PROJECT_KEY: "{broken"})
        assert recall_project(session, 5) is None
        assert SELECTED_PROJECT_KEY not in session

    def test_forget(self):
        """Test forget removes the entry."""
        session = MemoryStore()
        remember_project(session, build_project(5, "acme"))
        forget_project(session)
        assert session.keys() == []
