"""Tests for debounced, ancestor-aware refresh coalescing."""

from __future__ import annotations

import pytest
from conftest import FOO, OTHER, PKG, PROJ

from deptree.engine.coalescer import (
    IDLE,
    ROOT,
    PendingKind,
    PendingRefresh,
    RefreshCoalescer,
    merge_refresh,
)
from deptree.engine.nodes import create_node


def _path_ancestry(candidate: str, other: str) -> bool:
    return other == candidate or other.startswith(candidate + "/")


# ── Pure transition function ──


def test_merge_from_idle_targets_node():
    t = merge_refresh(IDLE, "/a", _path_ancestry)
    assert t.pending == PendingRefresh.for_node("/a")
    assert not t.flush_first


@pytest.mark.parametrize("pending", [IDLE, PendingRefresh.for_node("/a"), ROOT])
def test_merge_root_request_always_collapses_to_root(pending):
    t = merge_refresh(pending, None, _path_ancestry)
    assert t.pending is ROOT
    assert not t.flush_first


def test_merge_into_pending_root_stays_root():
    assert merge_refresh(ROOT, "/a/b", _path_ancestry).pending is ROOT


def test_merge_broader_request_replaces_pending():
    t = merge_refresh(PendingRefresh.for_node("/a/b"), "/a", _path_ancestry)
    assert t.pending.node == "/a"
    assert not t.flush_first


def test_merge_narrower_request_keeps_pending():
    pending = PendingRefresh.for_node("/a")
    t = merge_refresh(pending, "/a/b/c", _path_ancestry)
    assert t.pending is pending
    assert not t.flush_first


def test_merge_disjoint_request_flushes_first():
    t = merge_refresh(PendingRefresh.for_node("/a"), "/b", _path_ancestry)
    assert t.pending.node == "/b"
    assert t.flush_first


# ── Timed behaviour ──


@pytest.fixture
def nodes(context):
    proj = create_node(PROJ, None, context)
    pkg = create_node(PKG, proj, context)
    foo = create_node(FOO, pkg, context)
    other = create_node(OTHER, proj, context)
    return {"proj": proj, "pkg": pkg, "foo": foo, "other": other}


@pytest.fixture
def fired():
    return []


@pytest.fixture
def coalescer(scheduler, fired):
    return RefreshCoalescer(fired.append, delay_ms=2000, scheduler=scheduler)


def test_descendant_requests_fire_once_scoped_to_first(coalescer, scheduler, fired, nodes):
    coalescer.request(nodes["pkg"])
    scheduler.advance_ms(100)
    coalescer.request(nodes["foo"])
    scheduler.advance_ms(100)
    coalescer.request(nodes["pkg"])
    scheduler.advance_ms(5000)

    assert fired == [nodes["pkg"]]
    assert coalescer.fire_count == 1
    assert coalescer.pending is IDLE


def test_descendant_request_restarts_debounce_timer(coalescer, scheduler, fired, nodes):
    coalescer.request(nodes["proj"])
    scheduler.advance_ms(500)
    coalescer.request(nodes["pkg"])

    scheduler.advance_ms(1500)  # t=2000
    assert fired == []

    scheduler.advance_ms(500)  # t=2500
    assert fired == [nodes["proj"]]


def test_broader_request_widens_scope(coalescer, scheduler, fired, nodes):
    coalescer.request(nodes["foo"])
    coalescer.request(nodes["proj"])
    scheduler.advance_ms(2000)
    assert fired == [nodes["proj"]]


def test_disjoint_request_flushes_pending_immediately(coalescer, scheduler, fired, nodes):
    coalescer.request(nodes["pkg"])
    scheduler.advance_ms(300)
    coalescer.request(nodes["other"])

    assert fired == [nodes["pkg"]]
    assert coalescer.pending.node is nodes["other"]

    scheduler.advance_ms(1999)
    assert fired == [nodes["pkg"]]
    scheduler.advance_ms(1)
    assert fired == [nodes["pkg"], nodes["other"]]


def test_no_debounce_flushes_merged_scope(coalescer, scheduler, fired, nodes):
    coalescer.request(nodes["pkg"])
    coalescer.request(nodes["foo"], debounce=False)

    assert fired == [nodes["pkg"]]
    assert not coalescer.timer_active
    scheduler.advance_ms(5000)
    assert fired == [nodes["pkg"]]


def test_no_debounce_from_idle_fires_synchronously(coalescer, fired):
    coalescer.request(None, debounce=False)
    assert fired == [None]


def test_root_request_absorbs_everything(coalescer, scheduler, fired, nodes):
    coalescer.request(nodes["pkg"])
    coalescer.request(None)
    coalescer.request(nodes["other"])
    assert coalescer.pending.kind is PendingKind.ROOT
    scheduler.advance_ms(2000)
    assert fired == [None]


def test_cancel_drops_pending_request(coalescer, scheduler, fired, nodes):
    coalescer.request(nodes["pkg"])
    coalescer.cancel()
    scheduler.advance_ms(5000)
    assert fired == []
    assert coalescer.pending is IDLE


def test_set_delay_rearms_pending_timer(coalescer, scheduler, fired, nodes):
    coalescer.request(nodes["pkg"])
    scheduler.advance_ms(1000)
    coalescer.set_delay(500)
    assert coalescer.delay_ms == 500

    scheduler.advance_ms(499)
    assert fired == []
    scheduler.advance_ms(1)
    assert fired == [nodes["pkg"]]


def test_flush_without_timer_is_noop(coalescer, fired):
    coalescer.flush()
    assert fired == []
