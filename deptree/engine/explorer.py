"""Reveal-on-focus front of the explorer.

Keeps track of the resource the user is editing and locates it in the
tree, either from the node cache or by asking the backend to resolve the
resource into a descriptor chain. Reveals are serialized by their own
lock, independent of the root rebuild gate.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from .data_provider import DependencyDataProvider
from .errors import BackendUnavailableError
from .models import uri_scheme, uri_to_path
from .nodes import ExplorerNode, TreeContext

logger = logging.getLogger(__name__)

REVEALABLE_SCHEMES = frozenset({"file", "jdt"})

RevealListener = Callable[[ExplorerNode], None]


def _is_inside(path: str, folder: str) -> bool:
    try:
        Path(path).resolve().relative_to(Path(folder).resolve())
    except ValueError:
        return False
    return True


class DependencyExplorer:
    """Locates resources in the tree and follows editor focus."""

    def __init__(self, provider: DependencyDataProvider, context: TreeContext) -> None:
        self._provider = provider
        self._context = context
        self._reveal_lock = asyncio.Lock()
        self._reveal_listeners: list[RevealListener] = []
        self._visible = True
        self._active_uri: str | None = None
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = provider.on_did_change_tree_data(self._on_tree_changed)

    @property
    def provider(self) -> DependencyDataProvider:
        return self._provider

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def active_uri(self) -> str | None:
        return self._active_uri

    def set_visible(self, visible: bool) -> None:
        self._visible = visible

    def on_did_reveal(self, listener: RevealListener) -> Callable[[], None]:
        """Subscribe to reveal results. Returns an unsubscribe callable."""
        self._reveal_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._reveal_listeners:
                self._reveal_listeners.remove(listener)

        return _unsubscribe

    async def is_revealable(self, uri: str) -> bool:
        scheme = uri_scheme(uri)
        if scheme not in REVEALABLE_SCHEMES:
            return False
        if scheme == "file":
            path = uri_to_path(uri)
            folders = self._context.config.workspace_folders
            if not any(_is_inside(path, folder) for folder in folders):
                return False
        try:
            return await self._context.backend.ready()
        except BackendUnavailableError:
            return False

    async def reveal(self, uri: str, check_sync_setting: bool = True) -> ExplorerNode | None:
        """Locate *uri* in the tree and notify reveal listeners.

        Returns the revealed node, or None when the resource cannot be
        placed. ``check_sync_setting=False`` is for explicit user
        requests that bypass ``sync_with_editor``.
        """
        async with self._reveal_lock:
            if check_sync_setting and not self._context.config.sync_with_editor:
                return None
            if not await self.is_revealable(uri):
                logger.debug("Reveal skipped, not revealable: %s", uri)
                return None

            node = self._context.cache.get_node(uri)
            if node is None:
                try:
                    paths = await self._context.backend.resolve_path(uri)
                except BackendUnavailableError as exc:
                    logger.warning("Backend unavailable resolving %s: %s", uri, exc)
                    return None
                node = await self._provider.reveal_paths(paths)
            else:
                logger.debug("Reveal cache hit for %s", uri)

            if node is None:
                logger.info("Could not find %s in the explorer tree", uri)
                return None
            self._notify_reveal(node)
            return node

    def _notify_reveal(self, node: ExplorerNode) -> None:
        for listener in list(self._reveal_listeners):
            try:
                listener(node)
            except Exception:
                logger.exception("Reveal listener failed")

    async def on_editor_focus(self, uri: str | None) -> ExplorerNode | None:
        """Record the active resource and reveal it when the view is shown."""
        if not uri:
            return None
        self._active_uri = uri
        if not self._visible:
            return None
        return await self.reveal(uri)

    def _on_tree_changed(self, node: ExplorerNode | None) -> None:
        if not (self._visible and self._active_uri):
            return
        if not self._context.config.sync_with_editor:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._reveal_active())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _reveal_active(self) -> None:
        if self._active_uri:
            await self.reveal(self._active_uri)

    async def wait_idle(self) -> None:
        """Wait for background re-reveals started by tree changes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        self._unsubscribe()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
        self._reveal_listeners.clear()
