"""Backend contract consumed by the explorer engine.

A backend is the project service that knows the build structure: it
lists a node's immediate children and resolves a resource URI into the
chain of nodes leading to it. The engine never retries backend calls;
retry policy belongs to the backend.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from deptree.engine.models import NodeDescriptor

# Optional async callback for backend change notifications.
# Signature: async def callback(event: dict[str, Any]) -> None
# Events look like {"event": "file_changed", "uri": "...", "change_type": "create"}.
BackendEventCallback = Callable[[dict[str, Any]], Awaitable[None]]


@runtime_checkable
class Backend(Protocol):
    """Asynchronous project service."""

    async def ready(self) -> bool:
        """True once the service can answer tree queries."""
        ...

    async def has_import_errors(self) -> bool:
        """True when project import failed and no tree can be built."""
        ...

    async def list_children(self, descriptor: NodeDescriptor) -> list[NodeDescriptor]:
        """Immediate children of *descriptor*; a workspace lists its projects."""
        ...

    async def resolve_path(self, uri: str) -> list[NodeDescriptor]:
        """Chain of descriptors (outermost first) leading to *uri*, or []."""
        ...


async def fire_backend_event(
    callback: BackendEventCallback | None,
    event: dict[str, Any],
) -> None:
    """Deliver a backend event if a callback is set."""
    if callback is None:
        return
    await callback(event)
