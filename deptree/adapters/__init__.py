"""Adapters package - Bridge between the engine, backends and the TUI.

This package contains the backend contract, the filesystem backend, the
event bus, and the sync handler that turns backend change notifications
into refresh requests.
"""
from __future__ import annotations

__all__ = [
    "Backend",
    "EventBus",
    "FilesystemBackend",
    "SyncHandler",
]

from deptree.adapters.backend import Backend
from deptree.adapters.event_bus import EventBus
from deptree.adapters.fs_backend import FilesystemBackend
from deptree.adapters.sync_handler import SyncHandler
