"""Explorer tree nodes with lazy, backend-driven child materialization.

Ownership runs root -> children only. Parents are held through weak
references, so a detached subtree never keeps its old ancestors alive.
"""
from __future__ import annotations

import fnmatch
import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import ExplorerConfig
from .errors import BackendUnavailableError
from .gate import RebuildGate
from .models import (
    NON_SOURCE_KINDS,
    NodeDescriptor,
    NodeKind,
    TypeKind,
    is_test,
    uri_to_path,
)
from .node_cache import NodeCache

if TYPE_CHECKING:
    from deptree.adapters.backend import Backend

logger = logging.getLogger(__name__)


@dataclass
class TreeContext:
    """Services shared by every node of one explorer session."""
    backend: Backend
    cache: NodeCache
    config: ExplorerConfig


def filter_descriptors(
    descriptors: list[NodeDescriptor],
    config: ExplorerConfig,
) -> list[NodeDescriptor]:
    """Drop non-source resources (unless shown) and excluded URIs."""
    result = descriptors
    if not config.show_non_source_resources:
        result = [d for d in result if d.kind not in NON_SOURCE_KINDS]
    if config.exclude_patterns and result:
        kept: list[NodeDescriptor] = []
        for descriptor in result:
            if descriptor.uri and _is_excluded(descriptor.uri, config.exclude_patterns):
                continue
            kept.append(descriptor)
        result = kept
    return result


def _is_excluded(uri: str, patterns: list[str]) -> bool:
    path = uri_to_path(uri)
    return any(
        fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(uri, pattern)
        for pattern in patterns
    )


class ExplorerNode:
    """Base class for everything shown in the explorer tree."""

    kind: NodeKind

    def __init__(self, parent: ExplorerNode | None, context: TreeContext) -> None:
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._context = context

    @property
    def uri(self) -> str | None:
        return None

    @property
    def name(self) -> str:
        raise NotImplementedError

    def get_parent(self) -> ExplorerNode | None:
        return self._parent_ref() if self._parent_ref is not None else None

    async def get_children(self) -> list[ExplorerNode]:
        raise NotImplementedError

    def invalidate(self) -> None:
        """Forget loaded children so the next access re-queries the backend."""

    def same_as(self, other: ExplorerNode) -> bool:
        """Identity by resource location; object identity for synthetic nodes."""
        if self is other:
            return True
        if self.uri and other.uri:
            return self.uri == other.uri and self.kind == other.kind
        return False

    def is_itself_or_ancestor_of(self, other: ExplorerNode | None) -> bool:
        node = other
        while node is not None:
            if self.same_as(node):
                return True
            node = node.get_parent()
        return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} uri={self.uri!r}>"


class DataNode(ExplorerNode):
    """A node backed by a backend descriptor."""

    # Whether exclude/non-source filtering applies to this node's children.
    filters_children = True
    # Members keep declaration order; everything else sorts by kind, name.
    sorts_children = True

    def __init__(
        self,
        descriptor: NodeDescriptor,
        parent: ExplorerNode | None,
        context: TreeContext,
    ) -> None:
        super().__init__(parent, context)
        self.descriptor = descriptor
        self.kind = descriptor.kind
        self._children: list[ExplorerNode] | None = None
        self._load_gate: RebuildGate[list[ExplorerNode]] = RebuildGate(
            f"children:{descriptor.name}"
        )

    @property
    def uri(self) -> str | None:
        return self.descriptor.uri

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def path(self) -> str | None:
        return self.descriptor.path

    @property
    def metadata(self) -> dict:
        return self.descriptor.metadata

    @property
    def children_loaded(self) -> bool:
        return self._children is not None

    def has_children(self) -> bool:
        return True

    async def get_children(self) -> list[ExplorerNode]:
        if self._children is not None:
            return self._children
        return await self._load_gate.run_once(lambda: self._children, self._materialize)

    def invalidate(self) -> None:
        self._children = None

    async def _materialize(self) -> list[ExplorerNode]:
        if not self.has_children():
            self._children = []
            return self._children
        try:
            descriptors = await self.load_data()
        except BackendUnavailableError as exc:
            logger.warning("Backend unavailable listing %s: %s", self.name, exc)
            return []
        if self.filters_children:
            descriptors = filter_descriptors(descriptors, self._context.config)
        children = self.create_child_nodes(descriptors)
        if self.sorts_children:
            children.sort(key=lambda child: child.descriptor.sort_key)
        self._context.cache.save(children)
        self._children = children
        logger.debug("Materialized %d child(ren) of %s", len(children), self.name)
        return children

    async def load_data(self) -> list[NodeDescriptor]:
        return await self._context.backend.list_children(self.descriptor)

    def create_child_nodes(self, descriptors: list[NodeDescriptor]) -> list[DataNode]:
        return [create_node(d, self, self._context) for d in descriptors]

    async def reveal_paths(self, paths: list[NodeDescriptor]) -> DataNode | None:
        """Walk *paths* (next level first) below this node."""
        if not paths:
            return self
        head, rest = paths[0], paths[1:]
        for child in await self.get_children():
            if isinstance(child, DataNode) and child.descriptor.same_resource(head):
                return await child.reveal_paths(rest)
        logger.debug("Reveal stopped below %s: no child matches %s", self.name, head.name)
        return None


class WorkspaceNode(DataNode):
    kind = NodeKind.WORKSPACE
    filters_children = False


class ProjectNode(DataNode):
    kind = NodeKind.PROJECT

    def is_unmanaged_folder(self) -> bool:
        return str(self.metadata.get("UnmanagedFolder", "")).lower() == "true"

    @property
    def max_source_version(self) -> int:
        try:
            return int(self.metadata.get("MaxSourceVersion", 0))
        except (TypeError, ValueError):
            return 0


class ContainerNode(DataNode):
    kind = NodeKind.CONTAINER


class PackageRootNode(DataNode):
    kind = NodeKind.PACKAGE_ROOT

    def is_test(self) -> bool:
        return is_test(self.metadata)


class PackageNode(DataNode):
    kind = NodeKind.PACKAGE


class FolderNode(DataNode):
    kind = NodeKind.FOLDER


class FileNode(DataNode):
    kind = NodeKind.FILE

    def has_children(self) -> bool:
        return False


class PrimaryTypeNode(DataNode):
    """A top-level type; its members are children only when shown."""

    kind = NodeKind.PRIMARY_TYPE
    sorts_children = False
    K_TYPE_KIND = "TypeKind"

    def has_children(self) -> bool:
        return self._context.config.show_members and bool(self.uri)

    def create_child_nodes(self, descriptors: list[NodeDescriptor]) -> list[DataNode]:
        return [
            SymbolNode(d, self, self._context)
            for d in descriptors
            if d.kind is NodeKind.SYMBOL
        ]

    @property
    def type_kind(self) -> TypeKind:
        try:
            return TypeKind(self.metadata.get(self.K_TYPE_KIND, "class"))
        except ValueError:
            return TypeKind.CLASS

    def get_package_root(self) -> PackageRootNode | None:
        ancestor = self.get_parent()
        while ancestor is not None and not isinstance(ancestor, PackageRootNode):
            ancestor = ancestor.get_parent()
        return ancestor

    def get_project(self) -> ProjectNode | None:
        ancestor = self.get_parent()
        while ancestor is not None and not isinstance(ancestor, ProjectNode):
            ancestor = ancestor.get_parent()
        return ancestor

    @property
    def package_root_path(self) -> str:
        """Filesystem path of the package root, else of an unmanaged project."""
        root = self.get_package_root()
        if root is not None and root.uri:
            return uri_to_path(root.uri)
        project = self.get_project()
        if project is not None and project.is_unmanaged_folder() and project.uri:
            return uri_to_path(project.uri)
        return ""

    @property
    def context_value(self) -> str:
        value = "type"
        type_kind = self.type_kind
        if type_kind is TypeKind.ENUM:
            value += "+enum"
        elif type_kind is TypeKind.INTERFACE:
            value += "+interface"
        else:
            value += "+class"
        root = self.get_package_root()
        if root is not None and root.is_test():
            value += "+test"
        project = root.get_parent() if root is not None else None
        if isinstance(project, ProjectNode) and project.max_source_version >= 16:
            value += "+allowRecord"
        return value


class SymbolNode(DataNode):
    """A member of a primary type. Nested members arrive inline."""

    kind = NodeKind.SYMBOL
    filters_children = False
    sorts_children = False

    @property
    def uri(self) -> str | None:
        # Members share their file's URI and are never indexed by location.
        return None

    def has_children(self) -> bool:
        return bool(self.descriptor.children)

    async def load_data(self) -> list[NodeDescriptor]:
        return list(self.descriptor.children or [])

    def create_child_nodes(self, descriptors: list[NodeDescriptor]) -> list[DataNode]:
        return [SymbolNode(d, self, self._context) for d in descriptors]


_NODE_TYPES: dict[NodeKind, type[DataNode]] = {
    NodeKind.WORKSPACE: WorkspaceNode,
    NodeKind.PROJECT: ProjectNode,
    NodeKind.CONTAINER: ContainerNode,
    NodeKind.PACKAGE_ROOT: PackageRootNode,
    NodeKind.PACKAGE: PackageNode,
    NodeKind.PRIMARY_TYPE: PrimaryTypeNode,
    NodeKind.FOLDER: FolderNode,
    NodeKind.FILE: FileNode,
    NodeKind.SYMBOL: SymbolNode,
}


def create_node(
    descriptor: NodeDescriptor,
    parent: ExplorerNode | None,
    context: TreeContext,
) -> DataNode:
    """Instantiate the node class matching the descriptor's kind."""
    return _NODE_TYPES[descriptor.kind](descriptor, parent, context)
