"""Tests for the reveal protocol and editor-focus sync."""

from __future__ import annotations

import pytest
from conftest import BAR, FOO, PKG, PROJ

from deptree.engine.data_provider import DependencyDataProvider
from deptree.engine.errors import BackendError, BackendUnavailableError
from deptree.engine.explorer import DependencyExplorer
from deptree.engine.nodes import PrimaryTypeNode, create_node


@pytest.fixture
def provider(context, scheduler):
    return DependencyDataProvider(context, scheduler=scheduler)


@pytest.fixture
def explorer(provider, context):
    return DependencyExplorer(provider, context)


@pytest.fixture
def revealed(explorer):
    seen = []
    explorer.on_did_reveal(seen.append)
    return seen


@pytest.mark.asyncio
async def test_reveal_continues_from_cached_ancestor(explorer, backend, context, revealed):
    proj = create_node(PROJ, None, context)
    pkg = create_node(PKG, proj, context)
    context.cache.save([pkg])

    node = await explorer.reveal(FOO.uri)

    assert isinstance(node, PrimaryTypeNode)
    assert node.name == "Foo"
    assert node.get_parent() is pkg
    assert revealed == [node]
    # Only the cached package was listed; outer levels were never queried.
    assert dict(backend.list_calls) == {"/ws/proj/pkg": 1}
    assert backend.resolve_calls == [FOO.uri]


@pytest.mark.asyncio
async def test_reveal_walks_from_root_project(explorer, backend, revealed):
    node = await explorer.reveal(FOO.uri)

    assert node is not None and node.name == "Foo"
    assert [n.name for n in (node.get_parent(), node.get_parent().get_parent())] == ["pkg", "proj"]
    assert backend.list_calls["/ws"] == 1
    assert backend.list_calls["/ws/proj"] == 1


@pytest.mark.asyncio
async def test_second_reveal_is_served_from_cache(explorer, backend, revealed):
    first = await explorer.reveal(FOO.uri)
    second = await explorer.reveal(FOO.uri)

    assert second is first
    assert backend.resolve_calls == [FOO.uri]
    assert revealed == [first, first]


@pytest.mark.asyncio
async def test_sibling_reveal_reuses_materialized_package(explorer, backend):
    await explorer.reveal(FOO.uri)
    bar = await explorer.reveal(BAR.uri)

    assert bar is not None and bar.name == "Bar"
    assert backend.list_calls["/ws/proj/pkg"] == 1


@pytest.mark.asyncio
async def test_unresolvable_chain_yields_none(explorer, backend, revealed):
    assert await explorer.reveal("file:///ws/proj/missing/Gone.java") is None
    assert await explorer.reveal("file:///ws/proj/unknown.txt") is None
    assert revealed == []


@pytest.mark.asyncio
@pytest.mark.parametrize("uri", [
    "http://example.com/Foo.java",
    "file:///elsewhere/Foo.java",
])
async def test_non_revealable_uris_are_skipped(explorer, backend, uri):
    assert not await explorer.is_revealable(uri)
    assert await explorer.reveal(uri) is None
    assert backend.resolve_calls == []


@pytest.mark.asyncio
async def test_jdt_scheme_is_revealable(explorer):
    assert await explorer.is_revealable("jdt://contents/rt.jar/java.lang/String.class")


@pytest.mark.asyncio
async def test_not_ready_backend_is_not_revealable(explorer, backend):
    backend.is_ready = False
    assert await explorer.reveal(FOO.uri) is None
    assert backend.resolve_calls == []


@pytest.mark.asyncio
async def test_sync_setting_gates_implicit_reveals(explorer, context):
    context.config.sync_with_editor = False
    assert await explorer.reveal(FOO.uri) is None
    node = await explorer.reveal(FOO.uri, check_sync_setting=False)
    assert node is not None and node.name == "Foo"


@pytest.mark.asyncio
async def test_backend_unavailable_during_resolve_yields_none(explorer, backend):
    backend.fail_with = BackendUnavailableError()
    assert await explorer.reveal(FOO.uri) is None


@pytest.mark.asyncio
async def test_backend_fault_during_resolve_propagates(explorer, backend):
    backend.fail_with = BackendError("resolve_path", "bad payload")
    with pytest.raises(BackendError):
        await explorer.reveal(FOO.uri)


@pytest.mark.asyncio
async def test_focus_while_hidden_only_records_uri(explorer, backend, revealed):
    explorer.set_visible(False)
    assert await explorer.on_editor_focus(FOO.uri) is None
    assert explorer.active_uri == FOO.uri
    assert backend.resolve_calls == []


@pytest.mark.asyncio
async def test_tree_change_re_reveals_active_resource(explorer, provider, revealed):
    first = await explorer.on_editor_focus(FOO.uri)
    assert revealed == [first]

    provider.refresh()
    await explorer.wait_idle()

    assert len(revealed) == 2
    assert revealed[1] is not first
    assert revealed[1].name == "Foo"


@pytest.mark.asyncio
async def test_close_detaches_from_provider(explorer, provider, revealed):
    await explorer.on_editor_focus(FOO.uri)
    await explorer.close()
    provider.refresh()
    await explorer.wait_idle()
    assert len(revealed) == 1
