"""Headless tests for the Textual explorer view."""

from __future__ import annotations

from pathlib import Path

import pytest

from deptree.adapters.fs_backend import FilesystemBackend
from deptree.engine.config import ExplorerConfig
from deptree.engine.session import ExplorerSession
from deptree.tui.app import ExplorerApp


@pytest.fixture
def workspace(tmp_path) -> Path:
    ws = tmp_path.resolve() / "ws"
    source = ws / "app/src/main/java/com/acme/Greeter.java"
    source.parent.mkdir(parents=True)
    source.write_text("package com.acme;\n\npublic class Greeter {}\n")
    (ws / "app/pom.xml").write_text("<project/>\n")
    (ws / "app/README.md").write_text("# app\n")
    return ws


def _make_app(workspace: Path, **kwargs) -> ExplorerApp:
    session = ExplorerSession(
        ExplorerConfig(workspace_folders=[str(workspace)]),
        FilesystemBackend(workspace_folders=[str(workspace)]),
    )
    return ExplorerApp(session, watch=False, **kwargs)


@pytest.mark.asyncio
async def test_tree_loads_projects_on_mount(workspace):
    app = _make_app(workspace)
    async with app.run_test(size=(100, 30)) as pilot:
        await pilot.pause()
        labels = [str(child.label) for child in app.tree.root.children]
        assert labels == ["app"]
        assert app.session.started


@pytest.mark.asyncio
async def test_reveal_on_start_selects_type(workspace):
    target = workspace / "app/src/main/java/com/acme/Greeter.java"
    app = _make_app(workspace, reveal_uri=target.as_uri())
    async with app.run_test(size=(100, 30)) as pilot:
        await pilot.pause()
        await pilot.pause()
        cursor = app.tree.cursor_node
        assert cursor is not None and cursor.data is not None
        assert cursor.data.name == "Greeter"


@pytest.mark.asyncio
async def test_toggle_non_source_updates_config(workspace):
    app = _make_app(workspace)
    async with app.run_test(size=(100, 30)) as pilot:
        await pilot.pause()
        await pilot.press("n")
        await pilot.pause()
        assert app.session.config.show_non_source_resources is True

        project = app.tree.root.children[0]
        project.expand()
        await pilot.pause()
        await pilot.pause()
        assert "README.md" in [str(child.label) for child in project.children]
