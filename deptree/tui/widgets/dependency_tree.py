"""Dependency tree widget: lazy, provider-backed view of the explorer tree."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.widgets import Tree
from textual.widgets._tree import TreeNode

from deptree.engine.data_provider import DependencyDataProvider
from deptree.engine.models import NodeKind, TypeKind
from deptree.engine.nodes import (
    DataNode,
    ExplorerNode,
    PackageRootNode,
    PrimaryTypeNode,
    ProjectNode,
)

logger = logging.getLogger(__name__)

# Icon and colour per node kind
KIND_ICONS: dict[NodeKind, tuple[str, str]] = {
    NodeKind.WORKSPACE: ("▣", "bold blue"),
    NodeKind.PROJECT: ("◆", "bold cyan"),
    NodeKind.CONTAINER: ("▤", "magenta"),
    NodeKind.PACKAGE_ROOT: ("■", "yellow"),
    NodeKind.PACKAGE: ("▫", "green"),
    NodeKind.PRIMARY_TYPE: ("C", "bright_green"),
    NodeKind.FOLDER: ("▸", "dim"),
    NodeKind.FILE: ("·", "dim"),
    NodeKind.SYMBOL: ("•", "white"),
}

_TYPE_LETTERS = {
    TypeKind.CLASS: "C",
    TypeKind.INTERFACE: "I",
    TypeKind.ENUM: "E",
    TypeKind.RECORD: "R",
}


def _can_expand(node: ExplorerNode) -> bool:
    return isinstance(node, DataNode) and node.has_children()


class DependencyTree(Tree[ExplorerNode]):
    """Workspaces, projects, packages and types, loaded on expansion."""

    BINDINGS = [
        ("enter", "select_cursor", "Select"),
        ("space", "toggle_node", "Expand/Collapse"),
    ]

    def __init__(self, provider: DependencyDataProvider, **kwargs) -> None:
        super().__init__("Dependencies", **kwargs)
        self.show_root = False
        self.guide_depth = 3
        self._provider = provider
        # Ids of tree nodes whose children reflect the provider
        self._loaded: set[int] = set()

    async def load_roots(self) -> None:
        self._loaded.clear()
        self.root.remove_children()
        roots = await self._provider.get_children()
        self._populate(self.root, roots)
        self.root.expand()
        if not roots:
            self.root.add_leaf("(no projects)")

    def _populate(self, parent: TreeNode[ExplorerNode], nodes: list[ExplorerNode]) -> None:
        for node in nodes:
            parent.add(node.name, data=node, allow_expand=_can_expand(node))

    async def _load_children(self, tree_node: TreeNode[ExplorerNode]) -> None:
        if tree_node.data is None:
            return
        children = await self._provider.get_children(tree_node.data)
        tree_node.remove_children()
        self._populate(tree_node, children)
        self._loaded.add(tree_node.id)

    async def on_tree_node_expanded(self, event: Tree.NodeExpanded[ExplorerNode]) -> None:
        tree_node = event.node
        if tree_node.data is None or tree_node.id in self._loaded:
            return
        await self._load_children(tree_node)

    def find_tree_node(self, node: ExplorerNode) -> TreeNode[ExplorerNode] | None:
        pending = list(self.root.children)
        while pending:
            candidate = pending.pop(0)
            if candidate.data is not None and candidate.data.same_as(node):
                return candidate
            pending.extend(candidate.children)
        return None

    async def apply_change(self, node: ExplorerNode | None) -> None:
        """Reload the part of the view an invalidation touched."""
        if node is None:
            await self.load_roots()
            return
        tree_node = self.find_tree_node(node)
        if tree_node is None:
            return
        # The provider rebuilt this subtree; point the view at the live node.
        tree_node.data = node
        self._loaded.discard(tree_node.id)
        if tree_node.is_expanded:
            await self._load_children(tree_node)
        else:
            tree_node.remove_children()

    async def reveal_node(self, node: ExplorerNode) -> TreeNode[ExplorerNode] | None:
        """Expand the ancestors of *node* and move the cursor onto it."""
        chain: list[ExplorerNode] = []
        current: ExplorerNode | None = node
        while current is not None:
            chain.append(current)
            current = current.get_parent()
        chain.reverse()

        tree_node = self.root
        for index, item in enumerate(chain):
            match = next(
                (
                    child for child in tree_node.children
                    if child.data is not None and child.data.same_as(item)
                ),
                None,
            )
            if match is None:
                logger.debug("Reveal: %s not shown in view", item)
                return None
            if index < len(chain) - 1:
                if match.id not in self._loaded:
                    await self._load_children(match)
                match.expand()
            tree_node = match
        self.select_node(tree_node)
        self.scroll_to_node(tree_node)
        return tree_node

    def render_label(
        self,
        node: TreeNode[ExplorerNode],
        base_style,
        style,
    ) -> Text:
        item = node.data
        if item is None:
            return Text(str(node.label), style="dim")

        icon, color = KIND_ICONS.get(item.kind, ("?", "white"))
        if isinstance(item, PrimaryTypeNode):
            icon = _TYPE_LETTERS.get(item.type_kind, icon)
        label = Text()
        label.append(f"{icon} ", style=color)
        label.append(str(node.label), style=style)

        if isinstance(item, PackageRootNode) and item.is_test():
            label.append(" [test]", style="dim yellow")
        elif isinstance(item, ProjectNode):
            version = item.max_source_version
            if version:
                label.append(f" Java {version}", style="dim")
            if item.is_unmanaged_folder():
                label.append(" (unmanaged)", style="dim")
        return label
