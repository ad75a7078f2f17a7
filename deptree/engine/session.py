"""Explorer session: wires the cache, provider, explorer and sync handler.

Usage:
    session = ExplorerSession(config, backend)
    await session.start()
    roots = await session.provider.get_children()
    await session.explorer.reveal(uri)
    await session.close()
"""
from __future__ import annotations

import logging
from typing import Any

from deptree.adapters.backend import Backend
from deptree.adapters.event_bus import EventBus
from deptree.adapters.sync_handler import SyncHandler

from .coalescer import Scheduler
from .config import REFRESH_ON_CHANGE, ExplorerConfig
from .data_provider import DependencyDataProvider
from .explorer import DependencyExplorer
from .node_cache import NodeCache
from .nodes import TreeContext

logger = logging.getLogger(__name__)


class ExplorerSession:
    """Owns every session-wide service of one explorer view."""

    def __init__(
        self,
        config: ExplorerConfig | None = None,
        backend: Backend | None = None,
        scheduler: Scheduler | None = None,
        bus: EventBus | None = None,
    ) -> None:
        if backend is None:
            raise ValueError("ExplorerSession requires a backend")
        self._config = config or ExplorerConfig.from_env()
        self.cache = NodeCache()
        self.context = TreeContext(backend=backend, cache=self.cache, config=self._config)
        self.provider = DependencyDataProvider(self.context, scheduler=scheduler)
        self.explorer = DependencyExplorer(self.provider, self.context)
        self.sync_handler = SyncHandler(self.provider, self.context)
        self.sync_handler.set_enabled(self._config.auto_refresh)
        self.bus = bus or EventBus()
        self._unsubscribers = [
            self.provider.on_did_change_tree_data(self.bus.make_tree_listener()),
            self.explorer.on_did_reveal(self.bus.make_reveal_listener()),
        ]
        self._started = False

    @property
    def config(self) -> ExplorerConfig:
        return self._config

    @property
    def backend(self) -> Backend:
        return self.context.backend

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Attach to the backend's change notifications."""
        if self._started:
            return
        set_callback = getattr(self.backend, "set_event_callback", None)
        if set_callback is not None:
            set_callback(self.sync_handler)
        self._started = True
        logger.info(
            "Explorer session started: %d workspace folder(s), delay=%dms",
            len(self._config.workspace_folders), self._config.refresh_delay_ms,
        )

    async def close(self) -> None:
        """Cancel pending refreshes and detach every listener."""
        self.provider.coalescer.cancel()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.explorer.close()
        set_callback = getattr(self.backend, "set_event_callback", None)
        if set_callback is not None:
            set_callback(None)
        self.bus.close()
        self._started = False
        logger.info("Explorer session closed")

    def update_config(self, **changes: Any) -> set[str]:
        """Apply runtime setting changes; returns the names that changed."""
        updated, changed = self._config.with_changes(**changes)
        if not changed:
            return changed
        previous = self._config
        self._config = updated
        self.context.config = updated
        logger.info("Explorer settings changed: %s", ", ".join(sorted(changed)))

        if "refresh_delay_ms" in changed:
            self.provider.set_refresh_delay(updated.refresh_delay_ms)
        if "workspace_folders" in changed:
            set_folders = getattr(self.backend, "set_workspace_folders", None)
            if set_folders is not None:
                set_folders(updated.workspace_folders)
        if "auto_refresh" in changed:
            self.sync_handler.set_enabled(updated.auto_refresh)

        sync_turned_on = (
            "sync_with_editor" in changed
            and updated.sync_with_editor and not previous.sync_with_editor
        )
        if sync_turned_on or changed & REFRESH_ON_CHANGE:
            self.provider.refresh(debounce=False)
        return changed
