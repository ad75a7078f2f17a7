"""Tree data provider: the pull-based query surface the UI consumes.

Owns the root node list, the refresh coalescer and the root rebuild gate.
Change notifications are delivered synchronously to listeners; None means
the whole tree was invalidated.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from .coalescer import RefreshCoalescer, Scheduler
from .errors import BackendUnavailableError
from .gate import RebuildGate
from .models import NodeDescriptor, NodeKind, uri_to_path
from .nodes import DataNode, ExplorerNode, ProjectNode, TreeContext, WorkspaceNode

logger = logging.getLogger(__name__)

# Receives the invalidated node, or None when the whole tree was invalidated.
TreeChangeListener = Callable[[ExplorerNode | None], None]


def workspace_descriptor(folder: str) -> NodeDescriptor:
    path = Path(folder).resolve()
    return NodeDescriptor(
        kind=NodeKind.WORKSPACE,
        name=path.name or str(path),
        uri=path.as_uri(),
        path=path.as_posix(),
    )


class DependencyDataProvider:
    """Materializes, caches and invalidates explorer nodes."""

    def __init__(
        self,
        context: TreeContext,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._context = context
        self._root_items: list[ExplorerNode] | None = None
        self._root_gate: RebuildGate[list[ExplorerNode]] = RebuildGate("root")
        self._listeners: list[TreeChangeListener] = []
        self._coalescer = RefreshCoalescer(
            self._do_refresh,
            delay_ms=context.config.refresh_delay_ms,
            scheduler=scheduler,
        )

    @property
    def coalescer(self) -> RefreshCoalescer:
        return self._coalescer

    @property
    def root_gate(self) -> RebuildGate[list[ExplorerNode]]:
        return self._root_gate

    @property
    def root_items(self) -> list[ExplorerNode] | None:
        return self._root_items

    def on_did_change_tree_data(self, listener: TreeChangeListener) -> Callable[[], None]:
        """Subscribe to change notifications. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ── Refresh ──────────────────────────────────────────────

    def refresh(self, debounce: bool = False, node: ExplorerNode | None = None) -> None:
        """Request invalidation of *node* (None = whole tree)."""
        self._coalescer.request(node, debounce=debounce)

    def set_refresh_delay(self, delay_ms: int) -> None:
        self._coalescer.set_delay(delay_ms)

    def _do_refresh(self, node: ExplorerNode | None) -> None:
        if node is None:
            self._root_items = None
        else:
            node.invalidate()
        self._context.cache.remove_subtree(node)
        if node is not None:
            # The node itself stays live in its parent; only its descendants go.
            self._context.cache.save([node])
        for listener in list(self._listeners):
            try:
                listener(node)
            except Exception:
                logger.exception("Tree change listener failed")

    # ── Queries ──────────────────────────────────────────────

    async def _backend_ready(self) -> bool:
        try:
            return await self._context.backend.ready()
        except BackendUnavailableError:
            return False

    async def get_children(self, node: ExplorerNode | None = None) -> list[ExplorerNode]:
        """Root nodes when *node* is None, else the node's children."""
        if not await self._backend_ready():
            return []
        if node is None:
            children = await self.get_root_nodes()
        else:
            children = await node.get_children()
        self._context.cache.save(children)
        return children

    def get_parent(self, node: ExplorerNode) -> ExplorerNode | None:
        return node.get_parent()

    async def get_root_nodes(self) -> list[ExplorerNode]:
        return await self._root_gate.run_once(
            lambda: self._root_items, self._build_root_nodes
        )

    async def _build_root_nodes(self) -> list[ExplorerNode]:
        backend = self._context.backend
        try:
            if await backend.has_import_errors():
                logger.warning("Project import has errors; explorer tree is empty")
                return []
            folders = self._context.config.workspace_folders
            if not folders:
                logger.info("No workspace folders open")
                return []
            root_items: list[ExplorerNode] = []
            if len(folders) > 1:
                for folder in folders:
                    root_items.append(WorkspaceNode(
                        workspace_descriptor(folder), None, self._context
                    ))
            else:
                projects = await backend.list_children(workspace_descriptor(folders[0]))
                for project in projects:
                    root_items.append(ProjectNode(project, None, self._context))
        except BackendUnavailableError as exc:
            logger.warning("Backend unavailable while building roots: %s", exc)
            return []
        self._context.cache.save(root_items)
        self._root_items = root_items
        logger.info(
            "Root list rebuilt: %d %s node(s)",
            len(root_items), "workspace" if len(folders) > 1 else "project",
        )
        return root_items

    async def get_root_projects(self) -> list[ExplorerNode]:
        """Projects of every workspace, flattened."""
        root_elements = await self.get_root_nodes()
        if not root_elements or isinstance(root_elements[0], ProjectNode):
            return root_elements
        result: list[ExplorerNode] = []
        for workspace in root_elements:
            projects = await workspace.get_children()
            result.extend(projects)
        return result

    # ── Reveal ───────────────────────────────────────────────

    def _nearest_cached(
        self, paths: list[NodeDescriptor]
    ) -> tuple[DataNode, list[NodeDescriptor]] | None:
        """Deepest cached node on the chain plus the part of the chain below it."""
        target = next((d for d in reversed(paths) if d.uri), None)
        if target is None:
            return None
        best = self._context.cache.find_best_match(target.uri)
        if not isinstance(best, DataNode) or not best.uri:
            return None
        best_path = uri_to_path(best.uri)
        for index in range(len(paths) - 1, -1, -1):
            descriptor = paths[index]
            if (
                descriptor.uri
                and uri_to_path(descriptor.uri) == best_path
                and best.descriptor.same_resource(descriptor)
            ):
                return best, paths[index + 1:]
        return None

    async def reveal_paths(self, paths: list[NodeDescriptor]) -> DataNode | None:
        """Walk a resolved chain (project first) to its deepest node."""
        if not paths:
            return None
        cached = self._nearest_cached(paths)
        if cached is not None:
            start, remaining = cached
            logger.debug(
                "Reveal continuing from cached %s (%d level(s) left)",
                start.name, len(remaining),
            )
            return await start.reveal_paths(remaining)

        project_data, rest = paths[0], paths[1:]
        projects = await self.get_root_projects()
        project = next(
            (
                node for node in projects
                if isinstance(node, DataNode)
                and node.descriptor.same_resource(project_data)
            ),
            None,
        )
        if project is None:
            logger.debug("Reveal: no root project matches %s", project_data.name)
            return None
        return await project.reveal_paths(rest)
