"""Core data models for the explorer engine.

Node descriptors as the backend reports them, the enums classifying them,
and URI/path helpers. Single source of truth to avoid circular imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import unquote, urlsplit

from .errors import MalformedDescriptorError


class NodeKind(str, Enum):
    """Kinds of nodes the backend can report."""
    WORKSPACE = "workspace"
    PROJECT = "project"
    CONTAINER = "container"
    PACKAGE_ROOT = "package_root"
    PACKAGE = "package"
    PRIMARY_TYPE = "primary_type"
    FOLDER = "folder"
    FILE = "file"
    SYMBOL = "symbol"


class TypeKind(str, Enum):
    """Flavour of a primary type, reported in metadata under ``TypeKind``."""
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    RECORD = "record"


# Kinds hidden unless non-source resources are shown
NON_SOURCE_KINDS = frozenset({NodeKind.FOLDER, NodeKind.FILE})

# Sort order for siblings: kind first, then name
_KIND_ORDER: dict[NodeKind, int] = {
    NodeKind.WORKSPACE: 0,
    NodeKind.PROJECT: 1,
    NodeKind.CONTAINER: 2,
    NodeKind.PACKAGE_ROOT: 3,
    NodeKind.PACKAGE: 4,
    NodeKind.PRIMARY_TYPE: 5,
    NodeKind.FOLDER: 6,
    NodeKind.FILE: 7,
    NodeKind.SYMBOL: 8,
}

MetadataValue = str | bool | int


@dataclass
class NodeDescriptor:
    """A node as described by the backend.

    ``uri`` locates the resource (absent for synthetic nodes and symbols).
    ``path`` is the backend's identity path used when matching reveal
    chains. ``children`` is only populated for nodes whose children
    arrive inline (document symbols).
    """
    kind: NodeKind
    name: str
    uri: str | None = None
    path: str | None = None
    metadata: dict[str, MetadataValue] = field(default_factory=dict)
    children: list[NodeDescriptor] | None = None

    @property
    def sort_key(self) -> tuple[int, str]:
        return (_KIND_ORDER.get(self.kind, 99), self.name.lower())

    def same_resource(self, other: NodeDescriptor) -> bool:
        """Resource identity used to match reveal chains against children."""
        return self.name == other.name and self.path == other.path

    @classmethod
    def from_dict(cls, data: Any) -> NodeDescriptor:
        """Parse a backend payload, raising MalformedDescriptorError."""
        if not isinstance(data, dict):
            raise MalformedDescriptorError(data, "descriptor must be a mapping")
        raw_kind = data.get("kind")
        name = data.get("name")
        if raw_kind is None or not isinstance(name, str):
            raise MalformedDescriptorError(data, "missing kind or name")
        try:
            kind = NodeKind(raw_kind)
        except ValueError:
            raise MalformedDescriptorError(data, f"unknown kind {raw_kind!r}") from None
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise MalformedDescriptorError(data, "metadata must be a mapping")
        raw_children = data.get("children")
        children = (
            [cls.from_dict(child) for child in raw_children]
            if raw_children is not None
            else None
        )
        return cls(
            kind=kind,
            name=name,
            uri=data.get("uri") or None,
            path=data.get("path") or None,
            metadata=dict(metadata),
            children=children,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "name": self.name,
            "metadata": dict(self.metadata),
        }
        if self.uri:
            data["uri"] = self.uri
        if self.path:
            data["path"] = self.path
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def uri_to_path(uri: str) -> str:
    """Return the filesystem-style path of a resource URI.

    ``file`` URIs map to their decoded path. Other schemes (``jdt://``)
    keep authority and path so they still index under a stable prefix.
    Plain paths are returned unchanged.
    """
    parts = urlsplit(uri)
    if not parts.scheme or len(parts.scheme) == 1:  # plain or drive-letter path
        return uri
    path = unquote(parts.path)
    if parts.scheme == "file":
        # file:///C:/x -> C:/x
        if len(path) > 2 and path[0] == "/" and path[2] == ":":
            return path[1:]
        return path
    if parts.netloc:
        return f"/{parts.netloc}{path}"
    return path


def uri_scheme(uri: str) -> str:
    scheme = urlsplit(uri).scheme
    return "file" if len(scheme) <= 1 else scheme


def split_path(path: str) -> list[str]:
    """Split a path into non-empty segments on either separator."""
    return [segment for segment in path.replace("\\", "/").split("/") if segment]


def is_test(metadata: dict[str, MetadataValue] | None) -> bool:
    """True when backend metadata marks a node as test code."""
    if not metadata:
        return False
    if str(metadata.get("test", "")).lower() == "true":
        return True
    maven_scope = str(metadata.get("maven.scope", "") or "")
    if "test" in maven_scope.lower():
        return True
    gradle_scope = str(metadata.get("gradle_scope", "") or "")
    return "test" in gradle_scope.lower()
