"""deptree CLI: main application entry point."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import yaml
from rich.console import Console
from rich.tree import Tree as RichTree

from deptree.engine.config import ExplorerConfig
from deptree.engine.errors import ExplorerError
from deptree.engine.nodes import ExplorerNode, PrimaryTypeNode, ProjectNode, WorkspaceNode
from deptree.engine.yaml_config import discover_config, load_yaml_config

logger = logging.getLogger(__name__)


def _configure_logging(level: str, to_stderr: bool) -> Path:
    """Rotating file log under ~/.deptree/logs, plus stderr when asked."""
    log_dir = Path.home() / ".deptree" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "deptree.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    if to_stderr:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    return log_file


def _load_config(args) -> ExplorerConfig:
    config_path = args.config
    if config_path:
        explicit = Path(config_path)
        logger.info(
            "Using explicit config path: %s (exists=%s)", explicit, explicit.exists(),
        )
    else:
        discovered = discover_config(Path.cwd())
        config_path = str(discovered) if discovered else None

    config = load_yaml_config(config_path) if config_path else ExplorerConfig.from_env()

    changes: dict = {}
    if args.workspace:
        changes["workspace_folders"] = [str(Path(w).resolve()) for w in args.workspace]
    elif not config.workspace_folders:
        changes["workspace_folders"] = [str(Path.cwd())]
    if args.members:
        changes["show_members"] = True
    if args.non_source:
        changes["show_non_source_resources"] = True
    if changes:
        config, _ = config.with_changes(**changes)
    return config


def _label(node: ExplorerNode) -> str:
    label = node.name
    if isinstance(node, PrimaryTypeNode):
        label = f"{label} [dim]({node.type_kind.value})[/dim]"
    elif isinstance(node, (ProjectNode, WorkspaceNode)):
        label = f"[bold]{label}[/bold]"
    return label


async def _add_children(session, branch: RichTree, node: ExplorerNode, depth: int) -> None:
    if depth <= 0:
        return
    for child in await session.provider.get_children(node):
        sub = branch.add(_label(child))
        await _add_children(session, sub, child, depth - 1)


async def _dump(config: ExplorerConfig, depth: int, reveal: str | None) -> int:
    from deptree.adapters.fs_backend import FilesystemBackend
    from deptree.engine.session import ExplorerSession

    backend = FilesystemBackend(
        workspace_folders=config.workspace_folders,
        source_extensions=config.source_extensions,
    )
    session = ExplorerSession(config, backend)
    console = Console()
    await session.start()
    try:
        if reveal:
            uri = Path(reveal).resolve().as_uri()
            node = await session.explorer.reveal(uri, check_sync_setting=False)
            if node is None:
                console.print(f"[yellow]Could not reveal[/yellow] {reveal}")
            else:
                chain = []
                current: ExplorerNode | None = node
                while current is not None:
                    chain.append(current.name)
                    current = current.get_parent()
                console.print("[green]Revealed:[/green] " + " > ".join(reversed(chain)))

        tree = RichTree(", ".join(Path(f).name for f in config.workspace_folders) or "deptree")
        for root in await session.provider.get_children():
            branch = tree.add(_label(root))
            await _add_children(session, branch, root, depth - 1)
        console.print(tree)
    finally:
        await session.close()
    return 0


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="deptree",
        description="deptree: live dependency explorer for Java workspaces",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="YAML config file (default: .deptree/deptree.yaml if present)",
    )
    parser.add_argument(
        "--workspace", metavar="DIR", action="append",
        help="Workspace folder to open (repeatable; default: cwd)",
    )
    parser.add_argument(
        "--dump", action="store_true",
        help="Print the tree and exit (no TUI)",
    )
    parser.add_argument(
        "--depth", type=int, default=4,
        help="Levels to print with --dump (default: 4)",
    )
    parser.add_argument(
        "--reveal", metavar="PATH",
        help="Reveal a file in the tree on startup",
    )
    parser.add_argument(
        "--members", action="store_true",
        help="Show type members",
    )
    parser.add_argument(
        "--non-source", action="store_true",
        help="Show folders and files that are not source code",
    )
    args = parser.parse_args()

    log_file = _configure_logging(
        os.getenv("DEPTREE_LOG_LEVEL", "INFO"), to_stderr=args.dump,
    )
    try:
        config = _load_config(args)
    except (ExplorerError, OSError, yaml.YAMLError) as exc:
        print(f"deptree: {exc}", file=sys.stderr)
        sys.exit(2)
    logging.getLogger().setLevel(getattr(logging, config.log_level, logging.INFO))
    logger.info(
        "Starting deptree cwd=%s workspaces=%s log=%s",
        Path.cwd(), config.workspace_folders, log_file,
    )

    if args.dump:
        sys.exit(asyncio.run(_dump(config, args.depth, args.reveal)))

    # TUI mode
    from deptree.adapters.fs_backend import FilesystemBackend
    from deptree.engine.session import ExplorerSession
    from deptree.tui.app import ExplorerApp

    backend = FilesystemBackend(
        workspace_folders=config.workspace_folders,
        source_extensions=config.source_extensions,
    )
    session = ExplorerSession(config, backend)
    reveal_uri = Path(args.reveal).resolve().as_uri() if args.reveal else None
    app = ExplorerApp(session, reveal_uri=reveal_uri)
    app.run()


if __name__ == "__main__":
    main()
