"""Main glwiki TUI application."""

import webbrowser
from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    Markdown,
    MarkdownViewer,
    SelectionList,
    Static,
    Tree,
)
from textual.widgets.tree import TreeNode

from glwiki.config import GlwikiConfig
from glwiki.core import (
    GroupTreeNode,
    ProjectBrowser,
    count_projects,
    forget_project,
    groups_from_projects,
    recall_project,
    remember_project,
    visible_children,
)
from glwiki.errors import FetchError
from glwiki.models import Group, Project, WikiPage
from glwiki.sources import GitLabClient
from glwiki.store import KeyValueStore, MemoryStore, SqlStore
from glwiki.wiki import WikiReader

STATUS_REFRESH_SECONDS = 30  # Staleness label granularity is one minute

HELP_TEXT = """\
# glwiki

| Key | Action |
|-----|--------|
| `q` | Quit |
| `r` | Refresh (sync with GitLab) |
| `/` | Search by name or path |
| `g` | Choose active groups |
| `e` | Expand all groups |
| `c` | Collapse all groups |
| `o` | Open highlighted project in the browser |
| `enter` | Read the project wiki |
| `?` | This help |

Selecting a group also shows its subgroups. With no group selected every
project is shown; personal projects are always shown.
"""


class HelpScreen(ModalScreen):
    """Keyboard reference."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("q", "close", "Close"),
    ]

    CSS = """
    HelpScreen {
        align: center middle;
    }

    #help-dialog {
        width: 70;
        height: auto;
        max-height: 90%;
        background: $surface;
        border: solid $primary;
        padding: 1 2;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="help-dialog"):
            yield Markdown(HELP_TEXT)
            yield Button("Close", id="btn-close-help", variant="primary")

    @on(Button.Pressed, "#btn-close-help")
    def action_close(self) -> None:
        self.dismiss()


class GroupsScreen(ModalScreen[Optional[set]]):
    """Pick the active groups. Dismisses with the chosen ids, or None on cancel."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("a", "select_all", "All"),
        Binding("n", "deselect_all", "None"),
    ]

    CSS = """
    GroupsScreen {
        align: center middle;
    }

    #groups-dialog {
        width: 80%;
        height: 80%;
        background: $surface;
        border: solid $primary;
        padding: 1;
    }

    #groups-title {
        text-style: bold;
        margin-bottom: 1;
    }

    #groups-list {
        height: 1fr;
    }

    #groups-buttons {
        height: 3;
        align: right middle;
    }

    #groups-buttons Button {
        margin: 0 1;
    }
    """

    def __init__(self, groups: list[Group], active_ids: frozenset, **kwargs) -> None:
        super().__init__(**kwargs)
        self.groups = groups
        self.active_ids = active_ids

    def compose(self) -> ComposeResult:
        with Vertical(id="groups-dialog"):
            yield Label(
                "👥 Active groups (none selected shows every project)",
                id="groups-title",
            )
            yield SelectionList[int](
                *[
                    (f"{'  ' * group.depth}{group.name}  ({group.full_path})", group.id, group.id in self.active_ids)
                    for group in self.groups
                ],
                id="groups-list",
            )
            with Horizontal(id="groups-buttons"):
                yield Button("All", id="btn-groups-all")
                yield Button("None", id="btn-groups-none")
                yield Button("Cancel", id="btn-groups-cancel")
                yield Button("Apply", id="btn-groups-apply", variant="primary")

    @on(Button.Pressed, "#btn-groups-all")
    def action_select_all(self) -> None:
        self.query_one("#groups-list", SelectionList).select_all()

    @on(Button.Pressed, "#btn-groups-none")
    def action_deselect_all(self) -> None:
        self.query_one("#groups-list", SelectionList).deselect_all()

    @on(Button.Pressed, "#btn-groups-cancel")
    def action_cancel(self) -> None:
        self.dismiss(None)

    @on(Button.Pressed, "#btn-groups-apply")
    def on_apply_pressed(self) -> None:
        self.dismiss(set(self.query_one("#groups-list", SelectionList).selected))


class WikiViewerScreen(ModalScreen):
    """Wiki reader for the project remembered in the session store."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("q", "close", "Close"),
        Binding("n", "next_page", "Next"),
        Binding("p", "prev_page", "Previous"),
        Binding("o", "open_browser", "Open in Browser"),
    ]

    CSS = """
    WikiViewerScreen {
        align: center middle;
    }

    #wiki-dialog {
        width: 90%;
        height: 90%;
        background: $surface;
        border: solid $primary;
    }

    #wiki-header {
        height: auto;
        padding: 1;
        background: $primary-darken-2;
    }

    #wiki-title {
        text-style: bold;
    }

    #wiki-content {
        height: 1fr;
        padding: 1;
    }

    #wiki-footer {
        height: 3;
        padding: 0 1;
        background: $surface-darken-1;
        align: left middle;
    }

    #wiki-nav {
        margin: 0 1;
        color: $text-muted;
        width: auto;
    }
    """

    def __init__(self, project_id: int, session_store: KeyValueStore, reader: WikiReader, **kwargs) -> None:
        super().__init__(**kwargs)
        self.project_id = project_id
        self.session_store = session_store
        self.reader = reader
        self.project: Optional[Project] = None
        self.pages: list[WikiPage] = []
        self.page_index = 0

    def compose(self) -> ComposeResult:
        with Vertical(id="wiki-dialog"):
            with Horizontal(id="wiki-header"):
                yield Static("📖 Loading wiki...", id="wiki-title")
            yield MarkdownViewer("", id="wiki-content", show_table_of_contents=True)
            with Horizontal(id="wiki-footer"):
                yield Button("Close", id="btn-wiki-close")
                yield Static("", id="wiki-nav")
                yield Button("◀ Prev", id="btn-wiki-prev", disabled=True)
                yield Button("Next ▶", id="btn-wiki-next", disabled=True)

    def on_mount(self) -> None:
        self.project = recall_project(self.session_store, self.project_id)
        if self.project is None:
            self.app.notify("That project is no longer selected", severity="warning")
            self.dismiss()
            return
        self.query_one("#wiki-title", Static).update(f"📖 {self.project.path_with_namespace}")
        self.load_pages()

    @work(exclusive=True, thread=True)
    def load_pages(self) -> None:
        """Fetch the page listing and the first page."""
        try:
            pages = self.reader.list_pages(self.project_id)
            first = self.reader.get_page(self.project_id, pages[0].slug) if pages else None
        except FetchError as e:
            self.app.call_from_thread(self._show_error, str(e))
            return
        self.app.call_from_thread(self._show_listing, pages, first)

    @work(exclusive=True, thread=True)
    def load_page(self, index: int) -> None:
        try:
            page = self.reader.get_page(self.project_id, self.pages[index].slug)
        except FetchError as e:
            self.app.call_from_thread(self._show_error, str(e))
            return
        self.app.call_from_thread(self._show_page, index, page.title, page.content)

    async def _show_listing(self, pages: list[WikiPage], first) -> None:
        self.pages = pages
        if first is None:
            await self.query_one(MarkdownViewer).document.update("*This project has no wiki pages yet.*")
            self._update_nav()
            return
        await self._show_page(0, first.title, first.content)

    async def _show_page(self, index: int, title: str, content: str) -> None:
        self.page_index = index
        await self.query_one(MarkdownViewer).document.update(content)
        if self.project:
            self.query_one("#wiki-title", Static).update(f"📖 {self.project.path_with_namespace} › {title}")
        self._update_nav()

    def _show_error(self, message: str) -> None:
        self.notify(f"Could not load wiki: {message}", severity="error")

    def _update_nav(self) -> None:
        total = len(self.pages)
        self.query_one("#wiki-nav", Static).update(f"{self.page_index + 1}/{total}" if total else "")
        self.query_one("#btn-wiki-prev", Button).disabled = self.page_index <= 0
        self.query_one("#btn-wiki-next", Button).disabled = self.page_index >= total - 1

    @on(Button.Pressed, "#btn-wiki-close")
    def action_close(self) -> None:
        self.dismiss()

    @on(Button.Pressed, "#btn-wiki-next")
    def action_next_page(self) -> None:
        if self.page_index >= len(self.pages) - 1:
            self.notify("No more pages", severity="warning")
            return
        self.load_page(self.page_index + 1)

    @on(Button.Pressed, "#btn-wiki-prev")
    def action_prev_page(self) -> None:
        if self.page_index <= 0:
            self.notify("No previous page", severity="warning")
            return
        self.load_page(self.page_index - 1)

    def action_open_browser(self) -> None:
        if self.project:
            webbrowser.open(self.project.wiki_url)
            self.notify(f"Opening {self.project.wiki_url}")


class GlwikiApp(App):
    """Project tree dashboard with search, group selection and wiki reader."""

    TITLE = "glwiki"
    SUB_TITLE = "GitLab projects and wikis"

    CSS = """
    Screen {
        layout: vertical;
    }

    #search-bar {
        height: 3;
        padding: 0 1;
    }

    #search-input {
        width: 1fr;
    }

    #project-tree {
        height: 1fr;
        border: solid $primary;
    }

    #status-bar {
        height: 1;
        padding: 0 1;
        background: $primary-darken-2;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("r", "refresh", "Refresh", show=True),
        Binding("/", "search", "Search", show=True),
        Binding("g", "groups", "Groups", show=True),
        Binding("e", "expand_all", "Expand", show=True),
        Binding("c", "collapse_all", "Collapse", show=True),
        Binding("o", "open_project", "Open", show=False),
        Binding("?", "help", "Help", show=True),
    ]

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        session_store: Optional[KeyValueStore] = None,
        source: Optional[GitLabClient] = None,
        config: Optional[GlwikiConfig] = None,
    ):
        super().__init__()
        self._config = config or GlwikiConfig.load()
        self.theme = self._config.theme
        self.store = store if store is not None else SqlStore.from_url(self._config.get_database_url())
        self.session_store = session_store if session_store is not None else MemoryStore()
        self.source = source

        initial_query = self._config.view_state.last_query if self._config.view_state else ""
        self.browser = ProjectBrowser.create(self.store, source, query=initial_query)

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="search-bar"):
            yield Input(
                value=self.browser.query,
                placeholder="🔍 Search projects by name or path...",
                id="search-input",
            )
        yield Tree("📂 Projects", id="project-tree")
        yield Static("", id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        tree = self.query_one("#project-tree", Tree)
        tree.root.expand()
        tree.focus()
        self.populate_tree()
        self.update_status()
        self.set_interval(STATUS_REFRESH_SECONDS, self.update_status)
        if self.browser.needs_sync:
            self.run_refresh()

    # Tree

    def populate_tree(self) -> None:
        """Rebuild the widget tree from the browser's visible tree."""
        tree = self.query_one("#project-tree", Tree)
        tree.clear()
        root = self.browser.tree
        if not root.projects and not root.children:
            tree.root.add_leaf("No projects found" if self.browser.query.strip() else "You have no projects yet")
        self._add_children(tree.root, root)
        tree.root.expand()

    def _add_children(self, widget_node: TreeNode, node: GroupTreeNode) -> None:
        for child in visible_children(node):
            branch = widget_node.add(
                f"📁 {child.name}/ ({count_projects(child)})",
                data=child.path,
                expand=self.browser.is_expanded(child.path),
            )
            self._add_children(branch, child)
        for project in node.projects:
            icon = "👤" if project.namespace.is_personal else "•"
            widget_node.add_leaf(f"{icon} {project.name}", data=project)

    @on(Tree.NodeExpanded, "#project-tree")
    def on_group_expanded(self, event: Tree.NodeExpanded) -> None:
        if isinstance(event.node.data, str):
            self.browser.expanded.add(event.node.data)

    @on(Tree.NodeCollapsed, "#project-tree")
    def on_group_collapsed(self, event: Tree.NodeCollapsed) -> None:
        if isinstance(event.node.data, str):
            self.browser.expanded.discard(event.node.data)

    @on(Tree.NodeSelected, "#project-tree")
    def on_project_selected(self, event: Tree.NodeSelected) -> None:
        if isinstance(event.node.data, Project):
            self.open_wiki(event.node.data)

    def _highlighted_project(self) -> Optional[Project]:
        node = self.query_one("#project-tree", Tree).cursor_node
        if node is not None and isinstance(node.data, Project):
            return node.data
        return None

    # Status

    def update_status(self, syncing: bool = False) -> None:
        entry = self.browser.entry
        parts = [f"{len(self.browser.visible_projects)} of {len(entry.projects)} projects"]
        if len(self.browser.selection):
            parts.append(f"{len(self.browser.selection)} active groups")
        if syncing:
            parts.append("syncing...")
        elif entry.last_synced_at:
            parts.append(f"synced {self.browser.staleness} ago")
        else:
            parts.append("never synced")
        if self.browser.error:
            parts.append(f"⚠ {self.browser.error}")
        self.query_one("#status-bar", Static).update(" · ".join(parts))

    # Search

    @on(Input.Changed, "#search-input")
    def on_search_changed(self, event: Input.Changed) -> None:
        self.browser.set_query(event.value)
        self.populate_tree()
        self.update_status()

    def action_search(self) -> None:
        self.query_one("#search-input", Input).focus()

    # Sync

    @work(group="sync")
    async def run_refresh(self) -> None:
        """Sync with GitLab; on failure the cached tree stays up."""
        self.update_status(syncing=True)
        result = await self.browser.refresh()
        if result.ok:
            self.notify(str(result), title="Sync Complete")
        else:
            self.notify(str(result), title="Sync Failed", severity="error")
        self.populate_tree()
        self.update_status()

    def action_refresh(self) -> None:
        if self.source is None:
            self.notify("Not logged in. Run 'glwiki login' first.", severity="warning")
            return
        if self.browser.is_syncing:
            self.notify("Sync already in progress")
            return
        self.run_refresh()

    # Expand / collapse

    def action_expand_all(self) -> None:
        self.browser.expand_all()
        self.populate_tree()

    def action_collapse_all(self) -> None:
        self.browser.collapse_all()
        self.populate_tree()

    # Groups

    def action_groups(self) -> None:
        if self.source is None:
            self._open_groups(groups_from_projects(self.browser.entry.projects))
            return
        self.fetch_groups()

    @work(exclusive=True, thread=True)
    def fetch_groups(self) -> None:
        try:
            groups = self.source.list_groups()
        except FetchError as e:
            self.call_from_thread(
                self.notify,
                f"Could not load groups ({e}); showing groups from cached projects",
                severity="warning",
            )
            groups = groups_from_projects(self.browser.entry.projects)
        self.call_from_thread(self._open_groups, sorted(groups, key=lambda g: g.full_path))

    def _open_groups(self, groups: list[Group]) -> None:
        if not groups:
            self.notify("No groups found", severity="warning")
            return
        self.push_screen(GroupsScreen(groups, self.browser.selection.ids), self._apply_groups)

    def _apply_groups(self, group_ids: Optional[set]) -> None:
        if group_ids is None:
            return
        if group_ids:
            self.browser.select_all(group_ids)
        else:
            self.browser.deselect_all()
        self.populate_tree()
        self.update_status()

    # Wiki

    def open_wiki(self, project: Project) -> None:
        if self.source is None:
            self.notify("Not logged in. Run 'glwiki login' to read wikis.", severity="warning")
            return
        remember_project(self.session_store, project)
        self.push_screen(
            WikiViewerScreen(project.id, self.session_store, WikiReader(self.source)),
            lambda _: forget_project(self.session_store),
        )

    def action_open_project(self) -> None:
        project = self._highlighted_project()
        if project is None:
            self.notify("Highlight a project first", severity="warning")
            return
        webbrowser.open(project.web_url)
        self.notify(f"Opening {project.web_url}")

    def action_help(self) -> None:
        self.push_screen(HelpScreen())

    async def action_quit(self) -> None:
        self._config.save_view_state(last_query=self.browser.query)
        if self.source is not None:
            self.source.close()
        self.exit()


def run_tui() -> None:
    """Run the glwiki TUI application."""
    from glwiki.auth import AuthManager

    config = GlwikiConfig.load()
    store = SqlStore.from_url(config.get_database_url())
    session_store = MemoryStore()
    source = AuthManager(store, session_store).restore(validate=False)
    app = GlwikiApp(store=store, session_store=session_store, source=source, config=config)
    app.run()


if __name__ == "__main__":
    run_tui()
