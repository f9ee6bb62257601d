"""FastAPI application exposing the cached project tree and wikis as JSON.

Endpoints that touch the shared browser are coroutines, so they all run on
the event loop one at a time; blocking GitLab calls go through
``asyncio.to_thread``.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from glwiki import __version__
from glwiki.auth import AuthManager
from glwiki.config import GlwikiConfig
from glwiki.core import ProjectBrowser, build_group_tree, groups_from_projects, search
from glwiki.errors import FetchError, NotFound
from glwiki.export import tree_to_dict
from glwiki.log import configure_logging
from glwiki.models import Project, WikiPage
from glwiki.sources import GitLabClient
from glwiki.store import KeyValueStore, MemoryStore, SqlStore
from glwiki.wiki import WikiReader, outline

logger = logging.getLogger(__name__)

_store: Optional[KeyValueStore] = None
_browser: Optional[ProjectBrowser] = None


def get_store() -> KeyValueStore:
    """Durable store from the user's config, opened once."""
    global _store
    if _store is None:
        _store = SqlStore.from_url(GlwikiConfig.load().get_database_url())
    return _store


def get_source() -> Optional[GitLabClient]:
    """Client for the stored login, or None when logged out."""
    return AuthManager(get_store(), MemoryStore()).restore(validate=False)


def get_browser() -> ProjectBrowser:
    """One browser per process so concurrent syncs share the in-flight fetch.

    Only called from coroutine endpoints, so creation never races.
    """
    global _browser
    if _browser is None:
        _browser = ProjectBrowser.create(get_store(), get_source())
    return _browser


def reset_state() -> None:
    """Forget the cached store and browser (used on shutdown and by tests)."""
    global _store, _browser
    if _browser is not None and isinstance(_browser.cache.source, GitLabClient):
        _browser.cache.source.close()
    _store = None
    _browser = None


def require_source() -> GitLabClient:
    source = get_browser().cache.source
    if not isinstance(source, GitLabClient):
        raise HTTPException(status_code=401, detail="Not logged in to GitLab")
    return source


def fetch_error_response(e: FetchError) -> HTTPException:
    """Map a fetch failure to the HTTP error the client sees."""
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    configure_logging(GlwikiConfig.load().log_level)
    yield
    reset_state()


app = FastAPI(
    title="glwiki API",
    description="Cached GitLab projects grouped by group, with active-group filtering and wiki access",
    version=__version__,
    lifespan=lifespan,
)


class SyncStatus(BaseModel):
    """Freshness of the cached project list."""

    project_count: int
    last_synced_at: Optional[datetime] = None
    staleness: str
    needs_sync: bool
    error: Optional[str] = None


class GroupOut(BaseModel):
    """A group with its selection state."""

    id: int
    name: str
    full_path: str
    active: bool


class ActiveGroups(BaseModel):
    """Request/response body for the active group selection."""

    group_ids: list[int]


class WikiPageOut(BaseModel):
    """A wiki page with its content and heading outline."""

    slug: str
    title: str
    format: str
    content: str
    outline: list[dict]


def _status(browser: ProjectBrowser) -> SyncStatus:
    entry = browser.entry
    return SyncStatus(
        project_count=len(entry.projects),
        last_synced_at=entry.last_synced_at,
        staleness=browser.staleness,
        needs_sync=entry.needs_sync,
        error=browser.error,
    )


def _visible(browser: ProjectBrowser, q: str) -> list[Project]:
    # The shared browser keeps an empty query; per-request search narrows its result
    return search(browser.visible_projects, q)


@app.get("/")
def root() -> dict:
    """Root endpoint with API info."""
    return {
        "name": "glwiki API",
        "version": __version__,
        "description": "GitLab project browser and wiki reader",
        "docs_url": "/docs",
    }


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/status", response_model=SyncStatus)
async def sync_status() -> SyncStatus:
    """Cache freshness."""
    return _status(get_browser())


@app.get("/projects", response_model=list[Project])
async def list_projects(
    q: str = Query(default="", description="Case-insensitive match on name or path"),
) -> list[Project]:
    """Visible projects: active-group filter first, then the search."""
    return _visible(get_browser(), q)


@app.get("/projects/{project_id}", response_model=Project)
async def get_project(project_id: int) -> Project:
    """One cached project."""
    project = get_browser().project_by_id(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@app.get("/tree")
async def project_tree(
    q: str = Query(default="", description="Case-insensitive match on name or path"),
) -> dict:
    """Visible projects nested by group and subgroup; empty groups are left out."""
    return tree_to_dict(build_group_tree(_visible(get_browser(), q)))


@app.post("/sync", response_model=SyncStatus)
async def sync() -> SyncStatus:
    """Fetch the project list from GitLab. A failure leaves the cache untouched."""
    browser = get_browser()
    result = await browser.refresh()
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.error)
    return _status(browser)


@app.get("/groups", response_model=list[GroupOut])
async def list_groups() -> list[GroupOut]:
    """Groups to choose from: the live listing when logged in, else those of cached projects."""
    browser = get_browser()
    source = browser.cache.source
    if isinstance(source, GitLabClient):
        try:
            groups = await asyncio.to_thread(source.list_groups)
        except FetchError as e:
            raise fetch_error_response(e)
    else:
        groups = groups_from_projects(browser.entry.projects)

    return [
        GroupOut(id=g.id, name=g.name, full_path=g.full_path, active=g.id in browser.selection)
        for g in sorted(groups, key=lambda g: g.full_path)
    ]


@app.get("/groups/active", response_model=ActiveGroups)
async def get_active_groups() -> ActiveGroups:
    """Active group ids; empty means every project is shown."""
    return ActiveGroups(group_ids=sorted(get_browser().selection.ids))


@app.put("/groups/active", response_model=ActiveGroups)
async def set_active_groups(body: ActiveGroups) -> ActiveGroups:
    """Replace the active group selection."""
    browser = get_browser()
    if body.group_ids:
        browser.select_all(body.group_ids)
    else:
        browser.deselect_all()
    return ActiveGroups(group_ids=sorted(browser.selection.ids))


@app.post("/groups/active/{group_id}/toggle", response_model=ActiveGroups)
async def toggle_active_group(group_id: int) -> ActiveGroups:
    """Flip one group in or out of the selection."""
    browser = get_browser()
    browser.toggle_group(group_id)
    return ActiveGroups(group_ids=sorted(browser.selection.ids))


@app.get("/projects/{project_id}/wiki", response_model=list[WikiPage])
async def list_wiki_pages(project_id: int) -> list[WikiPage]:
    """Wiki pages of a project; empty when it has no wiki."""
    reader = WikiReader(require_source())
    try:
        return await asyncio.to_thread(reader.list_pages, project_id)
    except FetchError as e:
        raise fetch_error_response(e)


@app.get("/projects/{project_id}/wiki/{slug:path}", response_model=WikiPageOut)
async def get_wiki_page(project_id: int, slug: str) -> WikiPageOut:
    """One wiki page with its heading outline."""
    reader = WikiReader(require_source())
    try:
        page = await asyncio.to_thread(reader.get_page, project_id, slug)
    except FetchError as e:
        raise fetch_error_response(e)

    return WikiPageOut(
        slug=page.slug,
        title=page.title,
        format=page.format,
        content=page.content,
        outline=[
            {"level": h.level, "title": h.title, "anchor": h.anchor}
            for h in outline(page.content)
        ],
    )
