"""Filesystem-scanning backend.

Derives the project model from directory conventions instead of a build
server:

- a project is a directory holding a build file, or the workspace folder
  itself when none exists (an unmanaged folder);
- package roots are the conventional source folders;
- a package is a directory under a root that holds source files;
- primary types are source files, their members parsed with regexes.

Change detection uses watchdog: ``start_watching()`` runs an observer on
every workspace folder and reports file events through the event callback.
"""
from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from deptree.adapters.backend import BackendEventCallback, fire_backend_event
from deptree.engine.errors import BackendUnavailableError
from deptree.engine.models import (
    NodeDescriptor,
    NodeKind,
    TypeKind,
    uri_scheme,
    uri_to_path,
)

logger = logging.getLogger(__name__)

SKIP_DIRS: set[str] = {
    ".git", "node_modules", "__pycache__", ".venv", "venv",
    "target", "build", "bin", "out", ".gradle", ".idea", ".settings",
    ".deptree",
}

BUILD_FILES: dict[str, str] = {
    "pom.xml": "maven",
    "build.gradle": "gradle",
    "build.gradle.kts": "gradle",
    ".project": "eclipse",
}

# (relative path, is test code), in display order
SOURCE_ROOTS: tuple[tuple[str, bool], ...] = (
    ("src/main/java", False),
    ("src/test/java", True),
)
FALLBACK_SOURCE_ROOT = "src"

DEFAULT_PACKAGE_NAME = "(default package)"

_MAVEN_VERSION_RE = re.compile(
    r"<(?:maven\.compiler\.(?:release|source)|release|source)>\s*([\d.]+)\s*<"
)
_GRADLE_VERSION_RE = re.compile(
    r"(?:sourceCompatibility\s*=\s*(?:JavaVersion\.VERSION_)?['\"]?([\d._]+)"
    r"|JavaLanguageVersion\.of\(\s*(\d+)\s*\))"
)
_TYPE_DECL_RE = re.compile(
    r"^\s*(?:(?:public|protected|private|static|final|abstract|sealed|non-sealed|strictfp)\s+)*"
    r"(class|interface|enum|record|@interface)\s+(\w+)",
    re.MULTILINE,
)
_METHOD_DECL_RE = re.compile(
    r"^\s*(?:(?:public|protected|private|static|final|abstract|synchronized|native|default)\s+)*"
    r"(?:<[^>]+>\s+)?[\w.$<>\[\],?\s]+?\s+(\w+)\s*\([^;{)]*\)\s*(?:throws\s+[\w.,\s]+)?\{",
    re.MULTILINE,
)
_KEYWORDS = frozenset({"if", "for", "while", "switch", "catch", "return", "new", "else", "synchronized"})


def parse_source_version(text: str, build_tool: str) -> int | None:
    """Java language level declared in a pom.xml or Gradle script."""
    pattern = _MAVEN_VERSION_RE if build_tool == "maven" else _GRADLE_VERSION_RE
    match = pattern.search(text)
    if match is None:
        return None
    raw = next(group for group in match.groups() if group)
    raw = raw.replace("_", ".")
    if raw.startswith("1."):
        raw = raw[2:]
    try:
        return int(raw.split(".")[0])
    except ValueError:
        return None


def parse_type_kind(text: str, type_name: str) -> TypeKind:
    """Kind of the declaration named *type_name*, else of the first one."""
    declarations = _TYPE_DECL_RE.findall(text)
    for keyword, name in declarations:
        if name == type_name:
            return _to_type_kind(keyword)
    if declarations:
        return _to_type_kind(declarations[0][0])
    return TypeKind.CLASS


def _to_type_kind(keyword: str) -> TypeKind:
    if keyword == "@interface":
        return TypeKind.INTERFACE
    return TypeKind(keyword)


def parse_members(text: str, type_name: str) -> list[NodeDescriptor]:
    """Nested types and methods, in declaration order, as symbol descriptors."""
    found: list[tuple[int, NodeDescriptor]] = []
    for match in _TYPE_DECL_RE.finditer(text):
        keyword, name = match.group(1), match.group(2)
        if name == type_name:
            continue
        found.append((match.start(), NodeDescriptor(
            kind=NodeKind.SYMBOL,
            name=name,
            metadata={
                "SymbolKind": _to_type_kind(keyword).value,
                "line": text.count("\n", 0, match.start(2)) + 1,
            },
        )))
    for match in _METHOD_DECL_RE.finditer(text):
        name = match.group(1)
        if name in _KEYWORDS:
            continue
        found.append((match.start(), NodeDescriptor(
            kind=NodeKind.SYMBOL,
            name=f"{name}()",
            metadata={
                "SymbolKind": "constructor" if name == type_name else "method",
                "line": text.count("\n", 0, match.start(1)) + 1,
            },
        )))
    found.sort(key=lambda item: item[0])
    return [descriptor for _, descriptor in found]


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("Could not read %s: %s", path, exc)
        return ""


class FilesystemBackend:
    """Backend answering tree queries straight from the filesystem."""

    def __init__(
        self,
        workspace_folders: list[str] | None = None,
        source_extensions: list[str] | None = None,
        event_callback: BackendEventCallback | None = None,
    ) -> None:
        self._folders = [Path(f).resolve() for f in (workspace_folders or [])]
        self._extensions = tuple(source_extensions or [".java"])
        self._event_callback = event_callback
        self._ready = True
        self._observer: Observer | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._changes: asyncio.Queue[dict] | None = None
        self._pump: asyncio.Task | None = None

    # ── Lifecycle ────────────────────────────────────────────

    def set_event_callback(self, callback: BackendEventCallback | None) -> None:
        self._event_callback = callback

    def set_ready(self, ready: bool) -> None:
        self._ready = ready

    def set_workspace_folders(self, folders: list[str]) -> None:
        self._folders = [Path(f).resolve() for f in folders]
        if self._observer is not None:
            self._observer.unschedule_all()
            self._schedule_folders()

    async def ready(self) -> bool:
        return self._ready

    async def has_import_errors(self) -> bool:
        missing = [f for f in self._folders if not f.is_dir()]
        for folder in missing:
            logger.warning("Workspace folder does not exist: %s", folder)
        return bool(self._folders) and len(missing) == len(self._folders)

    # ── Descriptors ──────────────────────────────────────────

    def _is_source(self, path: Path) -> bool:
        return path.suffix in self._extensions

    @staticmethod
    def _descriptor(kind: NodeKind, name: str, path: Path, **metadata) -> NodeDescriptor:
        return NodeDescriptor(
            kind=kind,
            name=name,
            uri=path.as_uri(),
            path=path.as_posix(),
            metadata=metadata,
        )

    def _project_descriptor(self, path: Path) -> NodeDescriptor:
        metadata: dict = {}
        build_tool = None
        for filename, tool in BUILD_FILES.items():
            if (path / filename).is_file():
                build_tool = tool
                break
        if build_tool is None:
            metadata["UnmanagedFolder"] = True
        else:
            metadata["BuildTool"] = build_tool
            if build_tool != "eclipse":
                build_file = next(
                    path / name for name, tool in BUILD_FILES.items()
                    if tool == build_tool and (path / name).is_file()
                )
                version = parse_source_version(_read_text(build_file), build_tool)
                if version is not None:
                    metadata["MaxSourceVersion"] = version
        return self._descriptor(NodeKind.PROJECT, path.name, path, **metadata)

    def _package_roots(self, project: Path) -> list[tuple[Path, bool]]:
        roots = [
            (project / rel, test) for rel, test in SOURCE_ROOTS
            if (project / rel).is_dir()
        ]
        if not roots and (project / FALLBACK_SOURCE_ROOT).is_dir():
            roots.append((project / FALLBACK_SOURCE_ROOT, False))
        return roots

    def _root_descriptor(self, project: Path, root: Path, test: bool) -> NodeDescriptor:
        metadata = {"test": True} if test else {}
        return self._descriptor(
            NodeKind.PACKAGE_ROOT, root.relative_to(project).as_posix(), root, **metadata
        )

    def _package_descriptor(self, root: Path, directory: Path) -> NodeDescriptor:
        if directory == root:
            return NodeDescriptor(
                kind=NodeKind.PACKAGE,
                name=DEFAULT_PACKAGE_NAME,
                metadata={"PackageRoot": root.as_posix()},
            )
        name = ".".join(directory.relative_to(root).parts)
        return self._descriptor(NodeKind.PACKAGE, name, directory)

    def _type_descriptor(self, path: Path) -> NodeDescriptor:
        kind = parse_type_kind(_read_text(path), path.stem)
        return self._descriptor(
            NodeKind.PRIMARY_TYPE, path.stem, path, TypeKind=kind.value
        )

    def _entry_descriptor(self, path: Path) -> NodeDescriptor:
        kind = NodeKind.FOLDER if path.is_dir() else NodeKind.FILE
        return self._descriptor(kind, path.name, path)

    # ── Listing ──────────────────────────────────────────────

    def _list_dir(self, directory: Path) -> list[Path]:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise BackendUnavailableError(f"cannot list {directory}: {exc}") from exc
        return [
            Path(entry.path) for entry in entries
            if not (entry.is_dir() and entry.name in SKIP_DIRS)
        ]

    def _projects(self, folder: Path) -> list[Path]:
        if any((folder / name).is_file() for name in BUILD_FILES):
            return [folder]
        nested = [
            child for child in self._list_dir(folder)
            if child.is_dir()
            and any((child / name).is_file() for name in BUILD_FILES)
        ]
        return nested or [folder]

    def _packages(self, root: Path) -> list[Path]:
        packages: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
            if any(self._is_source(Path(f)) for f in filenames):
                packages.append(Path(dirpath))
        return packages

    def _project_children(self, project: Path) -> list[NodeDescriptor]:
        roots = self._package_roots(project)
        result = [self._root_descriptor(project, root, test) for root, test in roots]
        if not roots:
            # Unmanaged layout: packages sit directly under the project.
            result.extend(self._package_descriptor(project, d) for d in self._packages(project))
        hidden = {root for root, _ in roots}
        if roots and all(root.is_relative_to(project / "src") for root in hidden):
            hidden.add(project / "src")
        for entry in self._list_dir(project):
            if entry in hidden or entry.name.startswith("."):
                continue
            if not roots and entry.is_dir() and self._holds_sources(entry):
                continue
            if not roots and self._is_source(entry):
                continue
            result.append(self._entry_descriptor(entry))
        return result

    def _holds_sources(self, directory: Path) -> bool:
        for _, _, filenames in os.walk(directory):
            if any(self._is_source(Path(f)) for f in filenames):
                return True
        return False

    def _root_children(self, root: Path) -> list[NodeDescriptor]:
        result = [self._package_descriptor(root, d) for d in self._packages(root)]
        for entry in self._list_dir(root):
            if entry.is_file() and not self._is_source(entry):
                result.append(self._entry_descriptor(entry))
        return result

    def _package_children(self, directory: Path, sources_only: bool = False) -> list[NodeDescriptor]:
        result: list[NodeDescriptor] = []
        for entry in self._list_dir(directory):
            if not entry.is_file():
                continue
            if self._is_source(entry):
                result.append(self._type_descriptor(entry))
            elif not sources_only:
                result.append(self._entry_descriptor(entry))
        return result

    async def list_children(self, descriptor: NodeDescriptor) -> list[NodeDescriptor]:
        if not self._ready:
            raise BackendUnavailableError()
        kind = descriptor.kind
        if kind is NodeKind.PACKAGE and not descriptor.uri:
            root = descriptor.metadata.get("PackageRoot")
            # The enclosing root or project already lists its loose files.
            return self._package_children(Path(str(root)), sources_only=True) if root else []
        if not descriptor.uri:
            return []
        path = Path(uri_to_path(descriptor.uri))
        if kind is NodeKind.WORKSPACE:
            return [self._project_descriptor(p) for p in self._projects(path)]
        if kind is NodeKind.PROJECT:
            return self._project_children(path)
        if kind is NodeKind.PACKAGE_ROOT:
            return self._root_children(path)
        if kind is NodeKind.PACKAGE:
            return self._package_children(path)
        if kind is NodeKind.PRIMARY_TYPE:
            return parse_members(_read_text(path), path.stem)
        if kind is NodeKind.FOLDER:
            return [self._entry_descriptor(entry) for entry in self._list_dir(path)]
        return []

    # ── Resolution ───────────────────────────────────────────

    def _owning_project(self, target: Path) -> Path | None:
        candidates: list[Path] = []
        for folder in self._folders:
            if target == folder or target.is_relative_to(folder):
                candidates.extend(
                    p for p in self._projects(folder)
                    if target == p or target.is_relative_to(p)
                )
        if not candidates:
            return None
        return max(candidates, key=lambda p: len(p.parts))

    async def resolve_path(self, uri: str) -> list[NodeDescriptor]:
        if not self._ready:
            raise BackendUnavailableError()
        if uri_scheme(uri) != "file":
            return []
        target = Path(uri_to_path(uri)).resolve()
        if not target.exists():
            return []
        project = self._owning_project(target)
        if project is None:
            return []
        chain = [self._project_descriptor(project)]
        if target == project:
            return chain

        roots = self._package_roots(project)
        root_info = next(
            ((root, test) for root, test in roots
             if target == root or target.is_relative_to(root)),
            None,
        )
        if root_info is not None:
            root, test = root_info
            chain.append(self._root_descriptor(project, root, test))
        elif not roots and (
            (target.is_file() and self._is_source(target))
            or (target.is_dir() and self._holds_sources(target))
        ):
            root = project
        else:
            root = None

        if root is not None:
            if target == root:
                return chain
            if target.is_dir():
                chain.append(self._package_descriptor(root, target))
                return chain
            if target.parent != root or self._is_source(target):
                chain.append(self._package_descriptor(root, target.parent))
            if self._is_source(target):
                chain.append(self._type_descriptor(target))
            else:
                chain.append(self._entry_descriptor(target))
            return chain

        # Non-source resource: folder chain below the project.
        current = project
        for part in target.relative_to(project).parts:
            current = current / part
            chain.append(self._entry_descriptor(current))
        return chain

    # ── Change detection ─────────────────────────────────────

    @property
    def watching(self) -> bool:
        return self._observer is not None

    async def start_watching(self) -> None:
        """Start watchdog observers on every workspace folder.

        Observer callbacks run on watchdog's thread; events cross to the
        event loop through ``call_soon_threadsafe`` and are delivered to
        the event callback by a consumer task.
        """
        if self._observer is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._changes = asyncio.Queue()
        self._observer = Observer()
        self._schedule_folders()
        await self._loop.run_in_executor(None, self._observer.start)
        self._pump = asyncio.create_task(self._pump_changes())
        logger.info("Watching %d workspace folder(s)", len(self._folders))

    async def stop_watching(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        try:
            await asyncio.wait_for(
                asyncio.get_running_loop().run_in_executor(None, observer.join),
                timeout=1.0,
            )
        except asyncio.TimeoutError:
            logger.warning("Observer thread did not exit within timeout")
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None
        logger.info("Stopped watching workspace folders")

    def _schedule_folders(self) -> None:
        assert self._observer is not None and self._loop is not None
        assert self._changes is not None
        for folder in self._folders:
            if not folder.is_dir():
                logger.warning("Not watching missing workspace folder: %s", folder)
                continue
            handler = WorkspaceEventHandler(folder, self._loop, self._changes.put_nowait)
            self._observer.schedule(handler, str(folder), recursive=True)

    async def _pump_changes(self) -> None:
        assert self._changes is not None
        while True:
            event = await self._changes.get()
            try:
                await fire_backend_event(self._event_callback, event)
            except Exception:
                logger.exception("Change callback failed for %s", event.get("uri"))


_CHANGE_TYPES = {"created": "create", "deleted": "delete", "modified": "modify"}


def translate_fs_event(event: FileSystemEvent, root: Path) -> list[dict]:
    """Backend event dicts for one watchdog event under *root*."""
    if event.event_type == "moved":
        return (
            _path_events(root, os.fsdecode(event.src_path), "delete", event.is_directory)
            + _path_events(root, os.fsdecode(event.dest_path), "create", event.is_directory)
        )
    change_type = _CHANGE_TYPES.get(event.event_type)
    if change_type is None:
        return []
    return _path_events(root, os.fsdecode(event.src_path), change_type, event.is_directory)


def _path_events(root: Path, path: str, change_type: str, is_directory: bool) -> list[dict]:
    target = Path(path)
    try:
        parts = target.relative_to(root).parts
    except ValueError:
        return []
    if any(part in SKIP_DIRS for part in parts):
        return []
    if is_directory and change_type == "modify":
        return []
    if not is_directory and target.name in BUILD_FILES:
        # Build files reshape the project model, not just one folder.
        return [{"event": "classpath_updated", "uri": target.parent.as_uri()}]
    return [{
        "event": "file_changed",
        "uri": target.as_uri(),
        "change_type": change_type,
    }]


class WorkspaceEventHandler(FileSystemEventHandler):
    """Forwards watchdog events from one workspace folder to the event loop."""

    def __init__(
        self,
        root: Path,
        loop: asyncio.AbstractEventLoop,
        deliver: Callable[[dict], None],
    ) -> None:
        self._root = root
        self._loop = loop
        self._deliver = deliver

    def on_any_event(self, event: FileSystemEvent) -> None:
        for backend_event in translate_fs_event(event, self._root):
            if self._loop.is_closed():
                return
            try:
                self._loop.call_soon_threadsafe(self._deliver, backend_event)
            except RuntimeError:
                logger.debug("Event loop closed, dropping %s", backend_event["uri"])
                return
