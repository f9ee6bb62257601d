"""Tests for group tree reconstruction."""

from glwiki.core.tree import (
    GroupTreeNode,
    build_group_tree,
    count_projects,
    find_node,
    iter_nodes,
    render_tree,
    visible_children,
)
from glwiki.models import NamespaceKind

from conftest import build_project


class TestBuildGroupTree:
    """Tests for build_group_tree."""

    def test_empty_list_gives_bare_root(self):
        """Test no projects produce a root without children."""
        root = build_group_tree([])
        assert root.path == ""
        assert root.level == 0
        assert root.is_root
        assert root.projects == []
        assert root.children == {}

    def test_personal_projects_attach_to_root(self):
        """Test user namespace projects sit directly on the root."""
        personal = build_project(7, "alice", kind=NamespaceKind.USER)
        root = build_group_tree([personal])
        assert root.projects == [personal]
        assert root.children == {}

    def test_nested_paths_build_levels(self):
        """Test each path segment becomes one level."""
        project = build_project(1, "org/team/sub")
        root = build_group_tree([project])

        org = root.children["org"]
        team = org.children["team"]
        sub = team.children["sub"]
        assert (org.path, org.level) == ("org", 1)
        assert (team.path, team.level) == ("org/team", 2)
        assert (sub.path, sub.name, sub.level) == ("org/team/sub", "sub", 3)
        assert sub.projects == [project]
        assert org.projects == []

    def test_shared_prefix_shares_one_node(self):
        """Test projects with a common prefix reuse the same ancestor node."""
        a = build_project(1, "org/team")
        b = build_project(2, "org/team")
        c = build_project(3, "org/ops")
        root = build_group_tree([a, b, c])

        assert list(root.children) == ["org"]
        org = root.children["org"]
        assert list(org.children) == ["team", "ops"]
        assert org.children["team"].projects == [a, b]
        paths = [node.path for node in iter_nodes(root)]
        assert len(paths) == len(set(paths))

    def test_children_keep_first_insertion_order(self):
        """Test child order follows the order groups are first seen."""
        projects = [
            build_project(1, "zeta"),
            build_project(2, "alpha"),
            build_project(3, "zeta/inner"),
            build_project(4, "mid"),
        ]
        root = build_group_tree(projects)
        assert list(root.children) == ["zeta", "alpha", "mid"]

    def test_project_order_preserved_within_node(self):
        """Test projects keep input order inside their node."""
        projects = [build_project(i, "acme") for i in (5, 3, 9)]
        root = build_group_tree(projects)
        assert [p.id for p in root.children["acme"].projects] == [5, 3, 9]

    def test_no_project_lost_or_duplicated(self):
        """Test the total count over all nodes equals the input size."""
        projects = [
            build_project(1, "acme"),
            build_project(2, "acme/core"),
            build_project(3, "acme/core/db"),
            build_project(4, "other"),
            build_project(5, "bob", kind=NamespaceKind.USER),
        ]
        root = build_group_tree(projects)
        assert count_projects(root) == len(projects)
        ids = [p.id for node in iter_nodes(root) for p in node.projects]
        assert sorted(ids) == [1, 2, 3, 4, 5]

    def test_stray_slashes_are_ignored(self):
        """Test empty segments do not create nodes."""
        project = build_project(1, "org//team/")
        root = build_group_tree([project])
        assert list(root.children) == ["org"]
        assert list(root.children["org"].children) == ["team"]
        assert root.children["org"].children["team"].path == "org/team"

    def test_group_project_with_empty_path_goes_to_root(self):
        """Test a group namespace without segments attaches to the root."""
        project = build_project(1, "")
        root = build_group_tree([project])
        assert root.projects == [project]


class TestTreeHelpers:
    """Tests for traversal, lookup and rendering helpers."""

    def _tree(self) -> GroupTreeNode:
        return build_group_tree(
            [
                build_project(1, "acme", name="site"),
                build_project(2, "acme/core", name="api"),
                build_project(3, "other", name="tools"),
                build_project(4, "dave", name="dotfiles", kind=NamespaceKind.USER),
            ]
        )

    def test_iter_nodes_is_pre_order(self):
        """Test nodes are yielded parent before children."""
        paths = [node.path for node in iter_nodes(self._tree())]
        assert paths == ["", "acme", "acme/core", "other"]

    def test_count_projects_subtree(self):
        """Test counts include all descendants."""
        root = self._tree()
        assert count_projects(root) == 4
        assert count_projects(root.children["acme"]) == 2

    def test_find_node(self):
        """Test nodes can be located by path."""
        root = self._tree()
        assert find_node(root, "acme/core").name == "core"
        assert find_node(root, "") is root
        assert find_node(root, "acme/missing") is None

    def test_visible_children_prunes_empty_subtrees(self):
        """Test children without projects below them are skipped."""
        root = GroupTreeNode()
        root.child("empty").child("deeper")
        full = root.child("full")
        full.projects.append(build_project(1, "full"))
        assert [c.name for c in visible_children(root)] == ["full"]

    def test_render_tree_expanded(self):
        """Test rendering with everything expanded."""
        lines = render_tree(self._tree())
        assert lines == [
            "▾ acme/ (2)",
            "  ▾ core/ (1)",
            "    • api  [2]",
            "  • site  [1]",
            "▾ other/ (1)",
            "  • tools  [3]",
            "• dotfiles  [4]",
        ]

    def test_render_tree_collapsed(self):
        """Test collapsed groups hide their contents."""
        lines = render_tree(self._tree(), expanded={"other"})
        assert lines == [
            "▸ acme/ (2)",
            "▾ other/ (1)",
            "  • tools  [3]",
            "• dotfiles  [4]",
        ]
