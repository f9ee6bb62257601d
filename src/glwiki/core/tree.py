"""Group tree reconstruction from a flat project list.

The hierarchy is derived purely from ``namespace.full_path`` strings; the
group listing is not needed. Nodes are owned by their parent's ``children``
dict and located by path string, so there are no back-references.
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from glwiki.models import NamespaceKind, Project


@dataclass
class GroupTreeNode:
    """One group (or the root) in the reconstructed hierarchy."""

    path: str = ""  # Full ancestry path, "" for root
    name: str = ""  # Last path segment
    level: int = 0  # Root is 0
    projects: list[Project] = field(default_factory=list)
    children: dict[str, "GroupTreeNode"] = field(default_factory=dict)

    @property
    def is_root(self) -> bool:
        return self.level == 0

    def child(self, segment: str) -> "GroupTreeNode":
        """Return the child for ``segment``, creating it on first visit."""
        node = self.children.get(segment)
        if node is None:
            node = GroupTreeNode(
                path=f"{self.path}/{segment}" if self.path else segment,
                name=segment,
                level=self.level + 1,
            )
            self.children[segment] = node
        return node


def build_group_tree(projects: Iterable[Project]) -> GroupTreeNode:
    """Build the group tree for ``projects``.

    Personal projects hang off the root. Group projects are attached to the
    node reached by walking their namespace path, creating nodes as needed.
    The result keeps every path skeleton node; empty ones are pruned only
    when rendering.
    """
    root = GroupTreeNode()

    for project in projects:
        namespace = project.namespace
        if namespace.kind == NamespaceKind.USER:
            root.projects.append(project)
            continue

        node = root
        for segment in namespace.segments:
            node = node.child(segment)
        node.projects.append(project)

    return root


def iter_nodes(root: GroupTreeNode) -> Iterator[GroupTreeNode]:
    """Pre-order walk, children in insertion order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(node.children.values())))


def count_projects(node: GroupTreeNode) -> int:
    """Number of projects in the subtree rooted at ``node``."""
    return sum(len(n.projects) for n in iter_nodes(node))


def find_node(root: GroupTreeNode, path: str) -> Optional[GroupTreeNode]:
    """Locate a node by its full path; ``""`` is the root."""
    node = root
    for segment in (part for part in path.split("/") if part):
        node = node.children.get(segment)
        if node is None:
            return None
    return node


def visible_children(node: GroupTreeNode) -> list[GroupTreeNode]:
    """Children worth rendering: those with at least one project below them."""
    return [child for child in node.children.values() if count_projects(child) > 0]


def render_tree(
    root: GroupTreeNode,
    expanded: Optional[set[str]] = None,
    indent: str = "  ",
) -> list[str]:
    """Render the tree as indented text lines.

    With ``expanded`` set, only the listed group paths show their contents;
    ``None`` expands everything.
    """
    lines: list[str] = []

    def _walk(node: GroupTreeNode, depth: int) -> None:
        for child in visible_children(node):
            is_open = expanded is None or child.path in expanded
            marker = "▾" if is_open else "▸"
            lines.append(f"{indent * depth}{marker} {child.name}/ ({count_projects(child)})")
            if is_open:
                _walk(child, depth + 1)
        for project in node.projects:
            lines.append(f"{indent * depth}• {project.name}  [{project.id}]")

    _walk(root, 0)
    return lines
