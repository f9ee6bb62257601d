"""Tests for the glwiki API."""

import inspect
import json
from datetime import datetime, timezone

import pytest
import respx
from fastapi.testclient import TestClient
from httpx import Response

import glwiki.api.main as api_main
from glwiki.api.main import app
from glwiki.core import ProjectBrowser
from glwiki.core.cache import LAST_SYNC_KEY, PROJECTS_KEY
from glwiki.core.selection import ACTIVE_GROUPS_KEY
from glwiki.errors import FetchError
from glwiki.sources import GitLabClient
from glwiki.store import MemoryStore

from conftest import FakeSource

API = "https://gitlab.com/api/v4"


@pytest.fixture
def store(acme_projects) -> MemoryStore:
    """Store holding a synced snapshot of the acme projects."""
    return MemoryStore(
        {
            PROJECTS_KEY: json.dumps([p.model_dump(mode="json") for p in acme_projects]),
            LAST_SYNC_KEY: json.dumps(datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc).isoformat()),
        }
    )


@pytest.fixture
def use_browser(monkeypatch):
    """Install a browser for the API module to serve."""

    def install(browser: ProjectBrowser) -> TestClient:
        monkeypatch.setattr(api_main, "get_browser", lambda: browser)
        return TestClient(app)

    return install


@pytest.fixture
def client(store, acme_projects, use_browser):
    """Client over cached projects with a fake source."""
    with use_browser(ProjectBrowser.create(store, FakeSource(acme_projects))) as client:
        yield client


class TestRootEndpoints:
    """Tests for the info endpoints."""

    def test_root(self, client: TestClient) -> None:
        """Test root endpoint returns API info."""
        data = client.get("/").json()
        assert data["name"] == "glwiki API"
        assert data["version"] == "0.1.0"

    def test_health_check(self, client: TestClient) -> None:
        """Test health check returns healthy status."""
        assert client.get("/health").json() == {"status": "healthy"}

    def test_status(self, client: TestClient) -> None:
        """Test cache status."""
        data = client.get("/status").json()
        assert data["project_count"] == 3
        assert data["needs_sync"] is False
        assert data["error"] is None


class TestProjectsEndpoints:
    """Tests for project listing and the tree."""

    def test_list_projects(self, client: TestClient) -> None:
        """Test all cached projects are listed without a selection."""
        response = client.get("/projects")
        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [1, 2, 3]

    def test_search(self, client: TestClient) -> None:
        """Test the q parameter filters by name or path."""
        assert [p["id"] for p in client.get("/projects", params={"q": "ACME/CORE"}).json()] == [2]

    def test_get_project(self, client: TestClient) -> None:
        """Test fetching one project."""
        assert client.get("/projects/3").json()["path_with_namespace"] == "other/project-3"
        assert client.get("/projects/99").status_code == 404

    def test_tree(self, client: TestClient) -> None:
        """Test the nested tree."""
        data = client.get("/tree").json()
        assert [g["path"] for g in data["groups"]] == ["acme", "other"]
        assert data["groups"][0]["groups"][0]["path"] == "acme/core"

    def test_tree_with_search_prunes_groups(self, client: TestClient) -> None:
        """Test groups without matches are left out."""
        data = client.get("/tree", params={"q": "project-3"}).json()
        assert [g["path"] for g in data["groups"]] == ["other"]


class TestGroupEndpoints:
    """Tests for active group selection."""

    def test_toggle_scopes_projects(self, client: TestClient, store) -> None:
        """Test activating group 42 shows projects 1 and 2."""
        response = client.post("/groups/active/42/toggle")
        assert response.json() == {"group_ids": [42]}
        assert json.loads(store.get(ACTIVE_GROUPS_KEY)) == [42]
        assert [p["id"] for p in client.get("/projects").json()] == [1, 2]

        client.post("/groups/active/42/toggle")
        assert [p["id"] for p in client.get("/projects").json()] == [1, 2, 3]

    def test_put_and_clear(self, client: TestClient, store) -> None:
        """Test replacing the selection and clearing it."""
        response = client.put("/groups/active", json={"group_ids": [44, 42]})
        assert response.json() == {"group_ids": [42, 44]}
        assert client.get("/groups/active").json() == {"group_ids": [42, 44]}

        client.put("/groups/active", json={"group_ids": []})
        assert json.loads(store.get(ACTIVE_GROUPS_KEY)) == []
        assert len(client.get("/projects").json()) == 3

    def test_groups_from_cache_when_offline(self, client: TestClient) -> None:
        """Test groups come from cached namespaces without a GitLab client."""
        client.post("/groups/active/43/toggle")
        data = client.get("/groups").json()
        assert [(g["id"], g["full_path"], g["active"]) for g in data] == [
            (42, "acme", False),
            (43, "acme/core", True),
            (44, "other", False),
        ]


class TestSyncEndpoint:
    """Tests for POST /sync."""

    def test_sync(self, use_browser, acme_projects) -> None:
        """Test a successful sync fills the cache."""
        with use_browser(ProjectBrowser.create(MemoryStore(), FakeSource(acme_projects))) as client:
            assert client.get("/status").json()["needs_sync"] is True
            response = client.post("/sync")
        assert response.status_code == 200
        assert response.json()["project_count"] == 3

    def test_failed_sync_keeps_cache(self, use_browser, store) -> None:
        """Test a failed sync is a 502 and the cached projects remain."""
        source = FakeSource(error=FetchError("Could not reach GitLab"))
        with use_browser(ProjectBrowser.create(store, source)) as client:
            response = client.post("/sync")
            assert response.status_code == 502
            assert "Could not reach GitLab" in response.json()["detail"]
            assert len(client.get("/projects").json()) == 3
            assert client.get("/status").json()["error"] == "Could not reach GitLab"


class TestWikiEndpoints:
    """Tests for wiki endpoints."""

    @pytest.fixture
    def gitlab_client(self, store, use_browser):
        source = GitLabClient(token="t")
        with use_browser(ProjectBrowser.create(store, source)) as client:
            yield client
        source.close()

    def test_requires_login(self, client: TestClient) -> None:
        """Test wiki access without a GitLab client is a 401."""
        assert client.get("/projects/5/wiki").status_code == 401

    @respx.mock
    def test_list_pages(self, gitlab_client: TestClient) -> None:
        """Test listing wiki pages."""
        respx.get(f"{API}/projects/5/wikis").mock(
            return_value=Response(200, json=[{"slug": "home", "title": "Home", "format": "markdown"}])
        )
        response = gitlab_client.get("/projects/5/wiki")
        assert response.status_code == 200
        assert response.json() == [{"slug": "home", "title": "Home", "format": "markdown"}]

    @respx.mock
    def test_get_page_with_outline(self, gitlab_client: TestClient) -> None:
        """Test a page comes back with its headings."""
        respx.get(f"{API}/projects/5/wikis/home").mock(
            return_value=Response(
                200,
                json={"slug": "home", "title": "Home", "format": "markdown", "content": "# Hello World\n\n## Next"},
            )
        )
        data = gitlab_client.get("/projects/5/wiki/home").json()
        assert data["content"].startswith("# Hello World")
        assert data["outline"] == [
            {"level": 1, "title": "Hello World", "anchor": "hello-world"},
            {"level": 2, "title": "Next", "anchor": "next"},
        ]

    @respx.mock
    def test_missing_page_is_404(self, gitlab_client: TestClient) -> None:
        """Test GitLab's 404 maps to 404."""
        respx.get(f"{API}/projects/5/wikis/gone").mock(return_value=Response(404))
        assert gitlab_client.get("/projects/5/wiki/gone").status_code == 404

    @respx.mock
    def test_upstream_failure_is_502(self, gitlab_client: TestClient) -> None:
        """Test other GitLab failures map to 502."""
        respx.get(f"{API}/projects/5/wikis").mock(return_value=Response(403, json={"message": "403 Forbidden"}))
        response = gitlab_client.get("/projects/5/wiki")
        assert response.status_code == 502
        assert "403 Forbidden" in response.json()["detail"]


class TestSharedBrowser:
    """Tests for access to the process-wide browser."""

    def test_browser_endpoints_run_on_the_event_loop(self) -> None:
        """Test endpoints touching the shared browser are coroutines."""
        endpoints = [
            api_main.sync_status,
            api_main.list_projects,
            api_main.get_project,
            api_main.project_tree,
            api_main.sync,
            api_main.list_groups,
            api_main.get_active_groups,
            api_main.set_active_groups,
            api_main.toggle_active_group,
            api_main.list_wiki_pages,
            api_main.get_wiki_page,
        ]
        for endpoint in endpoints:
            assert inspect.iscoroutinefunction(endpoint), endpoint.__name__

    def test_toggle_then_list_reflects_new_selection(self, client: TestClient) -> None:
        """Test the project list follows every selection change."""
        for _ in range(3):
            client.post("/groups/active/44/toggle")
            assert [p["id"] for p in client.get("/projects").json()] == [3]
            client.post("/groups/active/44/toggle")
            assert [p["id"] for p in client.get("/projects").json()] == [1, 2, 3]
