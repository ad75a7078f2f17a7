"""Debounced, ancestor-aware coalescing of tree refresh requests.

A single pending slot holds one of:

    IDLE ──request(None)──> ROOT
    IDLE ──request(n)─────> NODE(n)
    NODE(p) ──request(n), n contains p──> NODE(n)
    NODE(p) ──request(n), p contains n──> NODE(p)
    NODE(p) ──request(n), disjoint──────> fire NODE(p), then NODE(n)
    any ──request(None) / ROOT pending──> ROOT

Every request restarts the debounce timer. When the timer expires (or a
non-debounced request flushes it) the pending scope is handed to the
fire callback and the slot returns to IDLE.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay (seconds)."""
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class PendingKind(str, Enum):
    IDLE = "idle"
    ROOT = "root"
    NODE = "node"


@dataclass(frozen=True)
class PendingRefresh:
    kind: PendingKind
    node: Any = None

    @classmethod
    def for_node(cls, node: Any) -> PendingRefresh:
        return cls(PendingKind.NODE, node)

    def describe(self) -> str:
        if self.kind is PendingKind.NODE:
            return f"node({getattr(self.node, 'name', self.node)})"
        return self.kind.value


IDLE = PendingRefresh(PendingKind.IDLE)
ROOT = PendingRefresh(PendingKind.ROOT)

AncestorCheck = Callable[[Any, Any], bool]


def _default_is_itself_or_ancestor(candidate: Any, other: Any) -> bool:
    return candidate.is_itself_or_ancestor_of(other)


@dataclass(frozen=True)
class Transition:
    """Outcome of merging one request into the pending slot."""
    pending: PendingRefresh
    flush_first: bool = False


def merge_refresh(
    pending: PendingRefresh,
    node: Any | None,
    is_itself_or_ancestor: AncestorCheck = _default_is_itself_or_ancestor,
) -> Transition:
    """Pure transition function for a refresh request on *node* (None = root)."""
    if node is None or pending.kind is PendingKind.ROOT:
        return Transition(ROOT)
    if pending.kind is PendingKind.IDLE:
        return Transition(PendingRefresh.for_node(node))
    if is_itself_or_ancestor(node, pending.node):
        return Transition(PendingRefresh.for_node(node))
    if is_itself_or_ancestor(pending.node, node):
        # Broader request already pending; the timer still restarts.
        return Transition(pending)
    return Transition(PendingRefresh.for_node(node), flush_first=True)


class RefreshCoalescer:
    """Debounces refresh requests and fires the minimal invalidation scope.

    ``on_fire`` receives the node to invalidate, or None for the whole
    tree. It runs synchronously, so a forced flush completes before the
    request that caused it is merged.
    """

    def __init__(
        self,
        on_fire: Callable[[Any | None], None],
        delay_ms: int = 2000,
        scheduler: Scheduler | None = None,
        is_itself_or_ancestor: AncestorCheck = _default_is_itself_or_ancestor,
    ) -> None:
        self._on_fire = on_fire
        self._delay = max(0, delay_ms) / 1000.0
        self._scheduler: Scheduler = scheduler or LoopScheduler()
        self._is_itself_or_ancestor = is_itself_or_ancestor
        self._pending: PendingRefresh = IDLE
        self._timer: TimerHandle | None = None
        self.fire_count = 0

    @property
    def pending(self) -> PendingRefresh:
        return self._pending

    @property
    def delay_ms(self) -> int:
        return int(self._delay * 1000)

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    def request(self, node: Any | None = None, debounce: bool = True) -> None:
        """Merge a refresh request; ``debounce=False`` fires immediately."""
        transition = merge_refresh(self._pending, node, self._is_itself_or_ancestor)
        logger.debug(
            "Refresh request %s: %s -> %s%s",
            "root" if node is None else getattr(node, "name", node),
            self._pending.describe(),
            transition.pending.describe(),
            " (flushing disjoint pending scope)" if transition.flush_first else "",
        )
        if transition.flush_first:
            self.flush()
        self._pending = transition.pending
        if not debounce:
            self._stop_timer()
            self._fire()
            return
        self._restart_timer()

    def flush(self) -> None:
        """Fire the pending scope now if a timer is armed."""
        if self._timer is None:
            return
        self._stop_timer()
        self._fire()

    def cancel(self) -> None:
        """Drop the pending request without firing."""
        self._stop_timer()
        self._pending = IDLE

    def set_delay(self, delay_ms: int) -> None:
        """Change the debounce interval, re-arming any pending request."""
        self._delay = max(0, delay_ms) / 1000.0
        if self._timer is not None:
            self._restart_timer()

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _restart_timer(self) -> None:
        self._stop_timer()
        self._timer = self._scheduler.call_later(self._delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._fire()

    def _fire(self) -> None:
        pending = self._pending
        self._pending = IDLE
        if pending.kind is PendingKind.IDLE:
            return
        self.fire_count += 1
        logger.debug("Refresh fired for %s", pending.describe())
        self._on_fire(pending.node if pending.kind is PendingKind.NODE else None)
