"""Export of the visible group tree.

Format:
```yaml
glwiki:
  version: "1.0"
  generated_at: "2026-10-18T10:30:00+00:00"
  last_synced_at: "2026-10-18T10:00:00+00:00"
  active_groups: [42]
  query: ""

tree:
  projects:            # personal projects
    - id: 7
      name: "dotfiles"
      path: "alice/dotfiles"
      web_url: "https://gitlab.com/alice/dotfiles"
  groups:
    - path: "acme"
      name: "acme"
      projects: [...]
      groups: [...]
```
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml

from glwiki.core.browser import ProjectBrowser
from glwiki.core.tree import GroupTreeNode, visible_children
from glwiki.models import Project

EXPORT_VERSION = "1.0"


def _project_dict(project: Project) -> dict:
    data = {
        "id": project.id,
        "name": project.name,
        "path": project.path_with_namespace,
        "web_url": project.web_url,
    }
    if project.description:
        data["description"] = project.description
    return data


def tree_to_dict(node: GroupTreeNode) -> dict:
    """Nested dict for ``node``; empty subtrees are left out."""
    data: dict = {}
    if not node.is_root:
        data["path"] = node.path
        data["name"] = node.name
    data["projects"] = [_project_dict(p) for p in node.projects]
    data["groups"] = [tree_to_dict(child) for child in visible_children(node)]
    return data


def generate_export(browser: ProjectBrowser) -> dict:
    """Export document for what the browser currently shows."""
    synced = browser.entry.last_synced_at
    return {
        "glwiki": {
            "version": EXPORT_VERSION,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "last_synced_at": synced.isoformat() if synced else None,
            "active_groups": sorted(browser.selection.ids),
            "query": browser.query,
        },
        "tree": tree_to_dict(browser.tree),
    }


def export_tree(browser: ProjectBrowser, fmt: str = "yaml", output_path: Optional[Path] = None) -> str:
    """Serialize the visible tree as YAML or JSON, optionally writing it to a file."""
    document = generate_export(browser)

    if fmt == "json":
        content = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    elif fmt == "yaml":
        content = yaml.safe_dump(
            document,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
            width=100,
        )
    else:
        raise ValueError(f"Unknown export format: {fmt}")

    if output_path:
        output_path.write_text(content, encoding="utf-8")

    return content
