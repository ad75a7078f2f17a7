"""deptree TUI: Textual application class."""

from __future__ import annotations

import logging

from textual import work
from textual.app import App, ComposeResult
from textual.widgets import Footer, Header

from deptree.adapters.events import NodeRevealed, TreeChanged
from deptree.engine.session import ExplorerSession
from deptree.tui.widgets.dependency_tree import DependencyTree

logger = logging.getLogger(__name__)


class ExplorerApp(App):
    """Terminal view of a workspace's dependency structure."""

    TITLE = "deptree"
    SUB_TITLE = "Dependency Explorer"
    CSS = """
    DependencyTree {
        height: 1fr;
        border: round $accent;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("r", "refresh", "Refresh"),
        ("m", "toggle_members", "Members"),
        ("n", "toggle_non_source", "Non-source"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        session: ExplorerSession,
        reveal_uri: str | None = None,
        watch: bool = True,
    ) -> None:
        super().__init__()
        self.session = session
        self._reveal_uri = reveal_uri
        self._watch = watch

    def compose(self) -> ComposeResult:
        yield Header()
        yield DependencyTree(self.session.provider, id="dependency-tree")
        yield Footer()

    @property
    def tree(self) -> DependencyTree:
        return self.query_one("#dependency-tree", DependencyTree)

    async def on_mount(self) -> None:
        await self.session.start()
        await self.tree.load_roots()
        self.tree.focus()
        self._consume_events()
        start_watching = getattr(self.session.backend, "start_watching", None)
        if start_watching is not None and self._watch:
            await start_watching()
        if self._reveal_uri:
            await self.session.explorer.reveal(self._reveal_uri, check_sync_setting=False)

    async def on_unmount(self) -> None:
        stop_watching = getattr(self.session.backend, "stop_watching", None)
        if stop_watching is not None:
            await stop_watching()
        await self.session.close()

    @work(exclusive=True, name="event-consumer")
    async def _consume_events(self) -> None:
        """Background worker: apply engine notifications to the view."""
        async for event in self.session.bus.consume():
            try:
                if isinstance(event, TreeChanged):
                    await self.tree.apply_change(event.node)
                elif isinstance(event, NodeRevealed) and event.node is not None:
                    await self.tree.reveal_node(event.node)
            except Exception:
                logger.exception("Failed to apply %s", event.event_type)

    def action_refresh(self) -> None:
        self.session.provider.refresh(debounce=False)

    def action_toggle_members(self) -> None:
        config = self.session.config
        self.session.update_config(show_members=not config.show_members)
        self.notify(f"Members {'shown' if self.session.config.show_members else 'hidden'}")

    def action_toggle_non_source(self) -> None:
        config = self.session.config
        self.session.update_config(
            show_non_source_resources=not config.show_non_source_resources
        )
        shown = self.session.config.show_non_source_resources
        self.notify(f"Non-source resources {'shown' if shown else 'hidden'}")
