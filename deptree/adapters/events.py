"""Event types flowing between the backend, the engine and the UI.

Backend notifications arrive as dicts and are parsed into typed
dataclasses. Engine notifications (tree changed, node revealed) are
created directly and carry the live node object.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ExplorerEvent:
    """Base event."""
    event_type: str = ""


# ── Engine → UI ──


@dataclass
class TreeChanged(ExplorerEvent):
    """A subtree (or, with ``node=None``, the whole tree) was invalidated."""
    event_type: str = "tree_changed"
    uri: str | None = None
    node: Any = field(default=None, repr=False)

    @property
    def is_root(self) -> bool:
        return self.node is None


@dataclass
class NodeRevealed(ExplorerEvent):
    """A resource was located in the tree and should be selected."""
    event_type: str = "node_revealed"
    uri: str | None = None
    node: Any = field(default=None, repr=False)


# ── Backend → engine ──


@dataclass
class ClasspathUpdated(ExplorerEvent):
    event_type: str = "classpath_updated"
    uri: str = ""


@dataclass
class ProjectsImported(ExplorerEvent):
    event_type: str = "projects_imported"
    uris: list = field(default_factory=list)


@dataclass
class ProjectsDeleted(ExplorerEvent):
    event_type: str = "projects_deleted"
    uris: list = field(default_factory=list)


@dataclass
class ServerModeChanged(ExplorerEvent):
    event_type: str = "server_mode_changed"
    mode: str = ""


@dataclass
class FileChanged(ExplorerEvent):
    """A file or folder was created, modified, or deleted on disk."""
    event_type: str = "file_changed"
    uri: str = ""
    change_type: str = ""  # "create", "modify", "delete"


# Map of event type strings to dataclass constructors
_EVENT_MAP: dict[str, type[ExplorerEvent]] = {
    "tree_changed": TreeChanged,
    "node_revealed": NodeRevealed,
    "classpath_updated": ClasspathUpdated,
    "projects_imported": ProjectsImported,
    "projects_deleted": ProjectsDeleted,
    "server_mode_changed": ServerModeChanged,
    "file_changed": FileChanged,
}


def dict_to_event(data: dict[str, Any]) -> ExplorerEvent:
    """Convert a backend event dict to a typed event dataclass.

    Unknown event types become a bare ExplorerEvent so callers can
    ignore them without special casing.
    """
    event_type = data.get("event", "")
    cls = _EVENT_MAP.get(event_type)
    if cls is None:
        return ExplorerEvent(event_type=event_type)
    kwargs = {
        k: v for k, v in data.items()
        if k != "event" and k in cls.__dataclass_fields__
    }
    return cls(**kwargs)
