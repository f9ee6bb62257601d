"""Click CLI for glwiki."""

import asyncio
from pathlib import Path
from typing import Optional

import click
from trogon import tui

from glwiki import __version__
from glwiki.auth import AuthManager
from glwiki.config import AVAILABLE_THEMES, EXPORT_FORMAT_OPTIONS, GlwikiConfig
from glwiki.core import ProjectBrowser, render_tree
from glwiki.errors import FetchError
from glwiki.log import configure_logging
from glwiki.sources import GitLabClient
from glwiki.store import KeyValueStore, MemoryStore, SqlStore
from glwiki.wiki import WikiReader, outline


class AppContext:
    """Lazily opened config, stores and GitLab client shared by commands."""

    def __init__(self, config: GlwikiConfig, token: Optional[str] = None) -> None:
        self.config = config
        self.token = token
        self._store: Optional[KeyValueStore] = None
        # One CLI process is one session
        self.session_store = MemoryStore()

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            self._store = SqlStore.from_url(self.config.get_database_url())
        return self._store

    def make_client(self, token: str, gitlab_url: Optional[str] = None) -> GitLabClient:
        return GitLabClient(
            token=token,
            gitlab_url=gitlab_url or self.config.gitlab_url,
            timeout=self.config.request_timeout,
            max_retries=self.config.max_retries,
            projects_per_page=self.config.projects_per_page,
            group_page_limit=self.config.group_page_limit,
        )

    @property
    def auth(self) -> AuthManager:
        return AuthManager(self.store, self.session_store, client_factory=self.make_client)

    def client(self) -> Optional[GitLabClient]:
        """Client from ``--token``/``GITLAB_TOKEN`` or the stored login, unvalidated."""
        if self.token:
            return self.make_client(self.token)
        return self.auth.restore(validate=False)

    def require_client(self) -> GitLabClient:
        client = self.client()
        if client is None:
            click.echo("Error: Not logged in. Run 'glwiki login' or set GITLAB_TOKEN.", err=True)
            raise SystemExit(1)
        return client

    def browser(self, query: str = "") -> ProjectBrowser:
        return ProjectBrowser.create(self.store, self.client(), query=query)


pass_app = click.make_pass_decorator(AppContext)


def _load_browser(app: AppContext, query: str = "", refresh: bool = False) -> ProjectBrowser:
    """Browser with data: syncs on first use or on request, keeps stale data on failure."""
    browser = app.browser(query=query)
    if refresh:
        result = asyncio.run(browser.refresh())
    else:
        result = asyncio.run(browser.ensure_loaded())

    if result is not None and not result.ok:
        if browser.entry.needs_sync:
            click.echo(f"Error: {result.error}", err=True)
            raise SystemExit(1)
        click.echo(f"Warning: {result.error} (showing cached data)", err=True)
    return browser


@tui()
@click.group()
@click.version_option(version=__version__, prog_name="glwiki")
@click.option("--token", "-t", envvar="GITLAB_TOKEN", help="GitLab personal access token")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (default from config)",
)
@click.pass_context
def cli(ctx: click.Context, token: Optional[str], log_level: Optional[str]) -> None:
    """glwiki - GitLab project browser and wiki reader.

    Browse your GitLab projects grouped by group/subgroup, restrict them to
    the groups you work in, and read project wikis.

    Quick start:
        glwiki login              Store a personal access token
        glwiki projects list      Show the project tree
        glwiki groups toggle ID   Show only projects of a group
        glwiki dashboard          Launch the interactive TUI dashboard
    """
    config = GlwikiConfig.load()
    configure_logging(log_level or config.log_level)
    ctx.obj = AppContext(config, token=token)


@cli.command()
@pass_app
def dashboard(app: AppContext) -> None:
    """Launch the interactive TUI dashboard.

    Group tree of your projects with live search and a wiki reader.

    Keyboard shortcuts:
        q - Quit
        r - Refresh (sync with GitLab)
        / - Search
        g - Active groups
        e - Expand all
        c - Collapse all
        ? - Help
    """
    from glwiki.tui import GlwikiApp

    dashboard_app = GlwikiApp(
        store=app.store,
        session_store=app.session_store,
        source=app.client(),
        config=app.config,
    )
    dashboard_app.run()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload")
def serve(host: str, port: int, reload: bool) -> None:
    """Start the JSON API server."""
    import uvicorn

    click.echo(f"Starting glwiki API server at http://{host}:{port}")
    click.echo(f"API docs available at http://{host}:{port}/docs")
    uvicorn.run("glwiki.api.main:app", host=host, port=port, reload=reload)


# =============================================================================
# Authentication
# =============================================================================


@cli.command()
@click.option("--token", "login_token", prompt=True, hide_input=True, help="Personal access token")
@click.option("--url", "gitlab_url", default=None, help="GitLab instance URL (default from config)")
@pass_app
def login(app: AppContext, login_token: str, gitlab_url: Optional[str]) -> None:
    """Validate a personal access token and store it."""
    gitlab_url = gitlab_url or app.config.gitlab_url
    if not app.auth.login(login_token, gitlab_url):
        click.echo(f"Error: Token was rejected by {gitlab_url}.", err=True)
        raise SystemExit(1)
    click.echo(f"✓ Logged in to {gitlab_url}")


@cli.command()
@click.option("--clear-cache", is_flag=True, help="Also forget the cached project list")
@pass_app
def logout(app: AppContext, clear_cache: bool) -> None:
    """Forget the stored token."""
    app.auth.logout()
    if clear_cache:
        app.browser().cache.clear()
    click.echo("✓ Logged out")


# =============================================================================
# Projects Commands
# =============================================================================


@cli.group()
def projects() -> None:
    """Browse cached projects.

    The project list is cached locally; it is fetched automatically the
    first time and refreshed only on request.
    """
    pass


@projects.command("list")
@click.option("--search", "-s", "query", default="", help="Filter by name or path")
@click.option("--flat", is_flag=True, help="Plain list instead of the group tree")
@click.option("--refresh", "-r", is_flag=True, help="Sync with GitLab first")
@pass_app
def projects_list(app: AppContext, query: str, flat: bool, refresh: bool) -> None:
    """List visible projects grouped by group and subgroup."""
    browser = _load_browser(app, query=query, refresh=refresh)
    visible = browser.visible_projects

    filters = []
    if browser.selection.ids:
        filters.append(f"{len(browser.selection)} active groups")
    if query.strip():
        filters.append(f"search '{query}'")
    filter_str = f" [{', '.join(filters)}]" if filters else ""

    click.echo(f"\n📁 Projects{filter_str}")
    click.echo("=" * 50)

    if not visible:
        click.echo("No projects found." if query.strip() else "You have no projects yet.")
    elif flat:
        for project in visible:
            click.echo(f"  {project.path_with_namespace}  [{project.id}]")
            if project.description:
                desc = project.description[:60] + "..." if len(project.description) > 60 else project.description
                click.echo(f"    {desc}")
    else:
        for line in render_tree(browser.tree):
            click.echo(f"  {line}")

    click.echo(
        f"\nShowing {len(visible)} of {len(browser.entry.projects)} projects "
        f"(synced {browser.staleness} ago)"
        if browser.entry.last_synced_at
        else f"\nShowing {len(visible)} projects"
    )


@projects.command("sync")
@pass_app
def projects_sync(app: AppContext) -> None:
    """Fetch the project list from GitLab and cache it."""
    app.require_client()
    browser = app.browser()
    result = asyncio.run(browser.refresh())
    if not result.ok:
        click.echo(f"Error: {result}", err=True)
        raise SystemExit(1)
    click.echo(f"✓ {result}")


@projects.command("status")
@pass_app
def projects_status(app: AppContext) -> None:
    """Show cache freshness and the active filter."""
    browser = app.browser()
    entry = browser.entry
    click.echo("\n📊 Cache Status:")
    click.echo(f"  Projects cached: {len(entry.projects)}")
    if entry.last_synced_at:
        click.echo(f"  Last sync:       {entry.last_synced_at.strftime('%Y-%m-%d %H:%M')} ({browser.staleness} ago)")
    else:
        click.echo("  Last sync:       never")
    if entry.corrupt:
        click.echo("  ⚠ Cached data was unreadable and will be re-fetched")
    active = sorted(browser.selection.ids)
    click.echo(f"  Active groups:   {', '.join(map(str, active)) if active else 'all'}")
    click.echo(f"  Visible:         {len(browser.visible_projects)}")


@projects.command("export")
@click.option(
    "--format", "-f", "fmt",
    type=click.Choice([value for value, _ in EXPORT_FORMAT_OPTIONS]),
    default=None,
    help="Output format (default from config)",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file (default: stdout)")
@click.option("--search", "-s", "query", default="", help="Filter by name or path")
@pass_app
def projects_export(app: AppContext, fmt: Optional[str], output: Optional[str], query: str) -> None:
    """Export the visible group tree."""
    from glwiki.export import export_tree

    browser = _load_browser(app, query=query)
    content = export_tree(browser, fmt or app.config.export_format, Path(output) if output else None)
    if output:
        click.echo(f"✓ Exported {len(browser.visible_projects)} projects to {output}")
    else:
        click.echo(content, nl=False)


# =============================================================================
# Groups Commands - active group selection
# =============================================================================


@cli.group()
def groups() -> None:
    """Choose the groups whose projects are shown.

    Selecting a group also shows the projects of all its subgroups.
    With no group selected every project is shown.
    """
    pass


@groups.command("list")
@pass_app
def groups_list(app: AppContext) -> None:
    """List your GitLab groups and whether each is active."""
    client = app.require_client()
    try:
        with client:
            all_groups = client.list_groups()
    except FetchError as e:
        click.echo(f"Error: Could not load groups: {e}", err=True)
        raise SystemExit(1)

    browser = app.browser()
    if not all_groups:
        click.echo("No groups found.")
        return

    click.echo(f"\n👥 Groups ({len(browser.selection)} of {len(all_groups)} selected):")
    for group in sorted(all_groups, key=lambda g: g.full_path):
        mark = "[x]" if group.id in browser.selection else "[ ]"
        click.echo(f"  {mark} {'  ' * group.depth}{group.name}  ({group.full_path}, id {group.id})")


@groups.command("active")
@pass_app
def groups_active(app: AppContext) -> None:
    """Show the active group ids."""
    ids = sorted(app.browser().selection.ids)
    if not ids:
        click.echo("No active groups: all projects are shown.")
        return
    for group_id in ids:
        click.echo(str(group_id))


@groups.command("toggle")
@click.argument("group_ids", nargs=-1, type=int, required=True)
@pass_app
def groups_toggle(app: AppContext, group_ids: tuple[int, ...]) -> None:
    """Select or deselect groups by id."""
    browser = app.browser()
    for group_id in group_ids:
        if browser.toggle_group(group_id):
            click.echo(f"✓ Group {group_id} selected: its projects will be shown")
        else:
            click.echo(f"✓ Group {group_id} deselected: its projects will no longer be shown")


@groups.command("select-all")
@pass_app
def groups_select_all(app: AppContext) -> None:
    """Select every group you belong to."""
    client = app.require_client()
    try:
        with client:
            all_groups = client.list_groups()
    except FetchError as e:
        click.echo(f"Error: Could not load groups: {e}", err=True)
        raise SystemExit(1)
    app.browser().select_all(g.id for g in all_groups)
    click.echo(f"✓ All groups selected ({len(all_groups)} groups)")


@groups.command("clear")
@pass_app
def groups_clear(app: AppContext) -> None:
    """Deselect every group (show all projects)."""
    app.browser().deselect_all()
    click.echo("✓ All groups deselected: all projects will be shown")


# =============================================================================
# Wiki Commands
# =============================================================================


@cli.group()
def wiki() -> None:
    """Read project wikis."""
    pass


@wiki.command("pages")
@click.argument("project_id", type=int)
@pass_app
def wiki_pages(app: AppContext, project_id: int) -> None:
    """List the wiki pages of a project."""
    client = app.require_client()
    try:
        with client:
            pages = WikiReader(client).list_pages(project_id)
    except FetchError as e:
        click.echo(f"Error: Could not load wiki pages: {e}", err=True)
        raise SystemExit(1)

    if not pages:
        click.echo("This project has no wiki pages yet.")
        return
    for page in pages:
        click.echo(f"  📄 {page.title}  ({page.slug}, {page.format})")


@wiki.command("show")
@click.argument("project_id", type=int)
@click.argument("slug", required=False)
@click.option("--outline", "show_outline", is_flag=True, help="Only print the headings")
@pass_app
def wiki_show(app: AppContext, project_id: int, slug: Optional[str], show_outline: bool) -> None:
    """Print a wiki page (the first page when SLUG is omitted)."""
    client = app.require_client()
    try:
        with client:
            reader = WikiReader(client)
            page = reader.get_page(project_id, slug) if slug else reader.first_page(project_id)
    except FetchError as e:
        click.echo(f"Error: Could not load wiki page: {e}", err=True)
        raise SystemExit(1)

    if page is None:
        click.echo("This project has no wiki pages yet.")
        return

    click.echo(f"# {page.title}  ({page.format})\n")
    if show_outline:
        for heading in outline(page.content):
            click.echo(f"{'  ' * (heading.level - 1)}- {heading.title}")
    else:
        click.echo(page.content)


# =============================================================================
# Config Commands
# =============================================================================


@cli.group("config")
def config_group() -> None:
    """View and change settings."""
    pass


@config_group.command("show")
@pass_app
def config_show(app: AppContext) -> None:
    """Print the current settings."""
    click.echo(f"Config file: {GlwikiConfig.get_config_path()}")
    for name in app.config.__dataclass_fields__:
        if name == "view_state":
            continue
        click.echo(f"  {name}: {getattr(app.config, name)}")
    click.echo(f"  database: {app.config.get_database_url()}")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@pass_app
def config_set(app: AppContext, key: str, value: str) -> None:
    """Change one setting, e.g. 'glwiki config set gitlab_url https://gitlab.example.com'."""
    fields = app.config.__dataclass_fields__
    if key not in fields or key == "view_state":
        click.echo(f"Error: Unknown setting '{key}'.", err=True)
        raise SystemExit(1)

    current = getattr(app.config, key)
    try:
        if isinstance(current, bool):
            converted = value.lower() in ("1", "true", "yes", "on")
        elif isinstance(current, int):
            converted = int(value)
        elif isinstance(current, float):
            converted = float(value)
        else:
            converted = value or None if key == "database_url" else value
    except ValueError:
        click.echo(f"Error: Invalid value for {key}: {value}", err=True)
        raise SystemExit(1)

    choices = {"theme": AVAILABLE_THEMES, "export_format": EXPORT_FORMAT_OPTIONS}.get(key)
    if choices and converted not in [option for option, _ in choices]:
        allowed = ", ".join(option for option, _ in choices)
        click.echo(f"Error: Invalid value for {key}: {value} (choose from {allowed})", err=True)
        raise SystemExit(1)

    setattr(app.config, key, converted)
    app.config.save()
    click.echo(f"✓ {key} = {converted}")


@config_group.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@pass_app
def config_reset(app: AppContext, yes: bool) -> None:
    """Restore default settings."""
    if not yes:
        click.confirm("Reset all settings to defaults?", abort=True)
    app.config.reset()
    app.config.save()
    click.echo("✓ Settings reset")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
