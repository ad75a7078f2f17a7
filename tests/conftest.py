"""Shared fakes and fixtures for the engine tests."""

from __future__ import annotations

import asyncio
from collections import Counter

import pytest

from deptree.engine.config import ExplorerConfig
from deptree.engine.errors import BackendUnavailableError
from deptree.engine.models import NodeDescriptor, NodeKind
from deptree.engine.node_cache import NodeCache
from deptree.engine.nodes import TreeContext


class VirtualTimer:
    def __init__(self, when: float, callback) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Deterministic stand-in for loop.call_later; time is in seconds."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[VirtualTimer] = []

    def call_later(self, delay: float, callback) -> VirtualTimer:
        timer = VirtualTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def active(self) -> list[VirtualTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.active if t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target

    def advance_ms(self, ms: int) -> None:
        self.advance(ms / 1000.0)


def descriptor(kind: NodeKind, path: str, name: str | None = None, **metadata) -> NodeDescriptor:
    return NodeDescriptor(
        kind=kind,
        name=name or path.rstrip("/").rsplit("/", 1)[-1],
        uri=f"file://{path}",
        path=path,
        metadata=metadata,
    )


WS = "/ws"
PROJ = descriptor(NodeKind.PROJECT, "/ws/proj", MaxSourceVersion=17)
PKG = descriptor(NodeKind.PACKAGE, "/ws/proj/pkg", name="pkg")
DOCS = descriptor(NodeKind.FOLDER, "/ws/proj/docs")
README = descriptor(NodeKind.FILE, "/ws/proj/README.md")
FOO = descriptor(NodeKind.PRIMARY_TYPE, "/ws/proj/pkg/Foo.java", name="Foo", TypeKind="class")
BAR = descriptor(NodeKind.PRIMARY_TYPE, "/ws/proj/pkg/Bar.java", name="Bar", TypeKind="enum")
OTHER = descriptor(NodeKind.PACKAGE, "/ws/proj/other", name="other")


class FakeBackend:
    """In-memory backend recording every query it answers."""

    def __init__(
        self,
        tree: dict[str, list[NodeDescriptor]] | None = None,
        chains: dict[str, list[NodeDescriptor]] | None = None,
    ) -> None:
        self.tree = tree if tree is not None else default_tree()
        self.chains = chains if chains is not None else default_chains()
        self.is_ready = True
        self.import_errors = False
        self.fail_with: Exception | None = None
        self.list_calls: Counter[str] = Counter()
        self.resolve_calls: list[str] = []
        self.event_callback = None

    def set_event_callback(self, callback) -> None:
        self.event_callback = callback

    async def ready(self) -> bool:
        return self.is_ready

    async def has_import_errors(self) -> bool:
        return self.import_errors

    async def list_children(self, descriptor: NodeDescriptor) -> list[NodeDescriptor]:
        key = descriptor.path or descriptor.name
        self.list_calls[key] += 1
        # Yield so concurrent callers interleave.
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        if not self.is_ready:
            raise BackendUnavailableError()
        return list(self.tree.get(key, []))

    async def resolve_path(self, uri: str) -> list[NodeDescriptor]:
        self.resolve_calls.append(uri)
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.chains.get(uri, []))


def default_tree() -> dict[str, list[NodeDescriptor]]:
    return {
        WS: [PROJ],
        "/ws/proj": [README, PKG, DOCS, OTHER],
        "/ws/proj/pkg": [FOO, BAR],
        "/ws/proj/docs": [descriptor(NodeKind.FILE, "/ws/proj/docs/guide.md")],
        "/ws/proj/pkg/Foo.java": [
            NodeDescriptor(kind=NodeKind.SYMBOL, name="run()"),
            NodeDescriptor(kind=NodeKind.SYMBOL, name="close()"),
        ],
    }


def default_chains() -> dict[str, list[NodeDescriptor]]:
    return {
        FOO.uri: [PROJ, PKG, FOO],
        BAR.uri: [PROJ, PKG, BAR],
        "file:///ws/proj/missing/Gone.java": [
            PROJ,
            descriptor(NodeKind.PACKAGE, "/ws/proj/missing", name="missing"),
            descriptor(NodeKind.PRIMARY_TYPE, "/ws/proj/missing/Gone.java", name="Gone"),
        ],
    }


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def config() -> ExplorerConfig:
    return ExplorerConfig(workspace_folders=[WS])


@pytest.fixture
def context(backend, config) -> TreeContext:
    return TreeContext(backend=backend, cache=NodeCache(), config=config)
