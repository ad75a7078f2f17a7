"""Async event bus carrying engine notifications to UI consumers.

The engine fires tree-change and reveal notifications synchronously;
the EventBus queues them for the UI's consumer loop.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from deptree.adapters.events import ExplorerEvent, NodeRevealed, TreeChanged

logger = logging.getLogger(__name__)


class EventBus:
    """Async queue bridging engine notifications to UI consumers."""

    def __init__(self, maxsize: int = 5000) -> None:
        self._queue: asyncio.Queue[ExplorerEvent] = asyncio.Queue(
            maxsize=maxsize
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def publish_nowait(self, event: ExplorerEvent) -> None:
        """Queue an event from synchronous code; drops it if the queue is full."""
        if self._closed:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error(
                "EventBus queue full, dropping: %s (queue size: %d)",
                event.event_type,
                self._queue.qsize(),
            )

    def make_tree_listener(self) -> Callable[[Any], None]:
        """Return a tree-change listener that forwards onto this bus."""
        def _listener(node: Any) -> None:
            self.publish_nowait(TreeChanged(
                uri=getattr(node, "uri", None), node=node,
            ))
        return _listener

    def make_reveal_listener(self) -> Callable[[Any], None]:
        """Return a reveal listener that forwards onto this bus."""
        def _listener(node: Any) -> None:
            self.publish_nowait(NodeRevealed(
                uri=getattr(node, "uri", None), node=node,
            ))
        return _listener

    async def consume(self) -> AsyncIterator[ExplorerEvent]:
        """Yield events as they arrive. Stops on close()."""
        while not self._closed:
            try:
                event = await asyncio.wait_for(
                    self._queue.get(), timeout=0.5
                )
                yield event
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

    def drain(self) -> list[ExplorerEvent]:
        """Remove and return every queued event without waiting."""
        events: list[ExplorerEvent] = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True
