"""Mutual exclusion for root-list rebuilds.

A rebuild that finds the gate held waits, then re-checks whether the
result it wanted appeared in the meantime before touching the backend.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RebuildGate(Generic[T]):
    """Non-reentrant async lock with a double-checked build helper."""

    def __init__(self, name: str = "rebuild") -> None:
        self._name = name
        self._lock = asyncio.Lock()
        self.builds = 0
        self.observed_concurrent = 0

    def locked(self) -> bool:
        return self._lock.locked()

    async def __aenter__(self) -> RebuildGate[T]:
        await self._lock.acquire()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._lock.release()

    async def run_once(
        self,
        current: Callable[[], T | None],
        build: Callable[[], Awaitable[T]],
    ) -> T:
        """Return ``current()`` if already built, else build under the gate.

        ``current`` is consulted after the gate is acquired, so a caller
        that waited behind a concurrent rebuild reuses its result.
        """
        waited = self._lock.locked()
        async with self._lock:
            existing = current()
            if existing is not None:
                if waited:
                    self.observed_concurrent += 1
                    logger.debug(
                        "%s gate: concurrent rebuild observed, reusing result",
                        self._name,
                    )
                return existing
            self.builds += 1
            return await build()
