"""Active-group and search filters over project lists.

Both filters are pure functions. Group filtering always runs first and the
text search narrows the already-scoped set.
"""

from typing import AbstractSet, Iterable, Optional, Sequence

from glwiki.models import Group, NamespaceKind, Project


def build_group_lookup(projects: Iterable[Project]) -> dict[str, int]:
    """Map each group namespace ``full_path`` seen on ``projects`` to its id.

    Only namespaces that directly own a loaded project are known, so an
    ancestor group without projects of its own cannot be resolved.
    """
    lookup: dict[str, int] = {}
    for project in projects:
        namespace = project.namespace
        if namespace.kind == NamespaceKind.GROUP:
            lookup.setdefault(namespace.full_path, namespace.id)
    return lookup


def is_visible(
    project: Project,
    active_group_ids: AbstractSet[int],
    all_projects: Sequence[Project],
    lookup: Optional[dict[str, int]] = None,
) -> bool:
    """Decide whether ``project`` survives the active-group selection.

    Selecting a group selects its subgroups too: every prefix of the
    project's namespace path, most specific first, is resolved to a group
    id and checked against the selection.
    """
    if not active_group_ids:
        return True

    namespace = project.namespace
    if namespace.kind == NamespaceKind.USER:
        return True

    if lookup is None:
        lookup = build_group_lookup(all_projects)

    segments = namespace.segments
    for end in range(len(segments), 0, -1):
        group_id = lookup.get("/".join(segments[:end]))
        if group_id is not None and group_id in active_group_ids:
            return True

    return namespace.id in active_group_ids


def filter_active(projects: Sequence[Project], active_group_ids: AbstractSet[int]) -> list[Project]:
    """Projects visible under the selection, in input order."""
    if not active_group_ids:
        return list(projects)
    lookup = build_group_lookup(projects)
    return [p for p in projects if is_visible(p, active_group_ids, projects, lookup)]


def matches(project: Project, query: str) -> bool:
    """Case-insensitive substring match on name or path with namespace."""
    if not query or not query.strip():
        return True
    needle = query.lower()
    return needle in project.name.lower() or needle in project.path_with_namespace.lower()


def search(projects: Iterable[Project], query: str) -> list[Project]:
    """Projects matching ``query``, in input order."""
    return [p for p in projects if matches(p, query)]


def groups_from_projects(projects: Iterable[Project]) -> list[Group]:
    """Groups known from the namespaces of loaded projects, by ``full_path``.

    Used when the group listing cannot be fetched; it has the same blind
    spot as ``build_group_lookup``.
    """
    seen: dict[str, Group] = {}
    for project in projects:
        namespace = project.namespace
        if namespace.kind == NamespaceKind.GROUP and namespace.full_path not in seen:
            seen[namespace.full_path] = Group(
                id=namespace.id,
                name=namespace.name,
                path=namespace.path,
                full_path=namespace.full_path,
            )
    return [seen[path] for path in sorted(seen)]
