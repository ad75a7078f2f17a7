"""Turns backend change notifications into refresh requests.

Installed as the backend's event callback. Build-structure changes
(classpath, project import/removal) refresh the whole tree after the
debounce interval; file changes refresh the nearest cached ancestor.
"""
from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any

from deptree.adapters.events import (
    ClasspathUpdated,
    ExplorerEvent,
    FileChanged,
    ProjectsDeleted,
    ProjectsImported,
    ServerModeChanged,
    dict_to_event,
)
from deptree.engine.data_provider import DependencyDataProvider
from deptree.engine.models import uri_to_path
from deptree.engine.nodes import PrimaryTypeNode, TreeContext

logger = logging.getLogger(__name__)

# Server mode whose activation makes the full project model available.
STANDARD_MODE = "standard"


class SyncHandler:
    """Routes backend events to the data provider's refresh entry point."""

    def __init__(self, provider: DependencyDataProvider, context: TreeContext) -> None:
        self._provider = provider
        self._context = context
        self._enabled = True
        self.handled = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        if enabled != self._enabled:
            logger.info("File change sync %s", "enabled" if enabled else "disabled")
        self._enabled = enabled

    async def __call__(self, event: dict[str, Any]) -> None:
        """Backend event callback entry point."""
        self.handle(dict_to_event(event))

    def handle(self, event: ExplorerEvent) -> None:
        self.handled += 1
        if isinstance(event, (ClasspathUpdated, ProjectsImported, ProjectsDeleted)):
            logger.debug("%s: scheduling tree refresh", event.event_type)
            self._provider.refresh(debounce=True)
        elif isinstance(event, ServerModeChanged):
            if event.mode.lower() == STANDARD_MODE:
                logger.info("Backend switched to %s mode; refreshing", event.mode)
                self._provider.refresh(debounce=False)
        elif isinstance(event, FileChanged):
            self._on_file_changed(event)
        else:
            logger.debug("Ignoring backend event %r", event.event_type)

    def _on_file_changed(self, event: FileChanged) -> None:
        if not self._enabled or not self._context.config.auto_refresh:
            return
        if not event.uri:
            return
        cache = self._context.cache
        if event.change_type in ("create", "delete"):
            parent = str(PurePosixPath(uri_to_path(event.uri)).parent)
            if not cache.is_covered(parent):
                logger.debug("File %s outside the materialized tree: %s", event.change_type, event.uri)
                return
            node = cache.find_best_match(parent)
            logger.debug(
                "File %s %s; refreshing %s",
                event.change_type, event.uri,
                "root" if node is None else node.name,
            )
            self._provider.refresh(debounce=True, node=node)
        elif event.change_type == "modify" and self._context.config.show_members:
            node = cache.get_node(event.uri)
            if isinstance(node, PrimaryTypeNode):
                self._provider.refresh(debounce=True, node=node)
