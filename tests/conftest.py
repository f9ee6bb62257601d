"""Shared fixtures for glwiki tests."""

import threading
from typing import Optional

import pytest

from glwiki.errors import FetchError
from glwiki.models import NamespaceKind, NamespaceRef, Project
from glwiki.sources.base import ProjectSource
from glwiki.store import MemoryStore


def build_project(
    project_id: int,
    full_path: str,
    name: Optional[str] = None,
    namespace_id: Optional[int] = None,
    kind: NamespaceKind = NamespaceKind.GROUP,
) -> Project:
    name = name or f"project-{project_id}"
    segments = [part for part in full_path.split("/") if part]
    return Project(
        id=project_id,
        name=name,
        description=f"Description of {name}",
        path_with_namespace=f"{full_path}/{name}",
        web_url=f"https://gitlab.com/{full_path}/{name}",
        namespace=NamespaceRef(
            id=namespace_id if namespace_id is not None else 1000 + project_id,
            name=segments[-1] if segments else full_path,
            path=segments[-1] if segments else full_path,
            kind=kind,
            full_path=full_path,
        ),
    )


class FakeSource(ProjectSource):
    """In-memory project source that counts calls and can fail or block."""

    def __init__(self, projects: Optional[list[Project]] = None, error: Optional[Exception] = None) -> None:
        self.projects = projects or []
        self.error = error
        self.calls = 0
        self.release: Optional[threading.Event] = None

    def list_projects(self) -> list[Project]:
        self.calls += 1
        if self.release is not None:
            self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return list(self.projects)

    def list_groups(self):
        return []


@pytest.fixture
def make_project():
    """Factory for projects in a given namespace path."""
    return build_project


@pytest.fixture
def acme_projects() -> list[Project]:
    """Group 42 is "acme"; project 2 sits in its subgroup, project 3 elsewhere."""
    return [
        build_project(1, "acme", namespace_id=42),
        build_project(2, "acme/core", namespace_id=43),
        build_project(3, "other", namespace_id=44),
    ]


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def fake_source():
    """Factory for ``FakeSource`` instances."""
    return FakeSource


@pytest.fixture
def failing_source() -> FakeSource:
    return FakeSource(error=FetchError("Could not reach GitLab: connection refused"))


@pytest.fixture(autouse=True)
def glwiki_home(tmp_path, monkeypatch):
    """Keep config and database files inside the test's tmp dir."""
    home = tmp_path / "glwiki-home"
    monkeypatch.setenv("GLWIKI_HOME", str(home))
    monkeypatch.delenv("GITLAB_TOKEN", raising=False)
    return home
