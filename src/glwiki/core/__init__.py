"""Project/group cache-and-filter engine."""

from .browser import ProjectBrowser, SyncResult
from .cache import CacheManager, staleness_label
from .filters import build_group_lookup, filter_active, groups_from_projects, is_visible, matches, search
from .selection import GroupSelection
from .session import forget_project, recall_project, remember_project
from .tree import (
    GroupTreeNode,
    build_group_tree,
    count_projects,
    find_node,
    iter_nodes,
    render_tree,
    visible_children,
)

__all__ = [
    "CacheManager",
    "GroupSelection",
    "GroupTreeNode",
    "ProjectBrowser",
    "SyncResult",
    "build_group_lookup",
    "build_group_tree",
    "count_projects",
    "filter_active",
    "find_node",
    "forget_project",
    "groups_from_projects",
    "is_visible",
    "iter_nodes",
    "matches",
    "recall_project",
    "remember_project",
    "render_tree",
    "search",
    "staleness_label",
    "visible_children",
]
