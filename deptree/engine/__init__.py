"""deptree engine: tree synchronization core of the dependency explorer."""
from .models import (
    NodeDescriptor,
    NodeKind,
    TypeKind,
    is_test,
    uri_to_path,
)
from .config import ExplorerConfig
from .trie import PathIndex, TrieNode
from .node_cache import NodeCache
from .coalescer import (
    LoopScheduler,
    PendingKind,
    PendingRefresh,
    RefreshCoalescer,
    merge_refresh,
)
from .gate import RebuildGate
from .errors import (
    BackendError,
    BackendUnavailableError,
    ConfigError,
    ExplorerError,
    MalformedDescriptorError,
)

__all__ = [
    # Session (lazy import to avoid circular deps)
    "ExplorerSession",
    "DependencyDataProvider",
    "DependencyExplorer",
    # Models
    "NodeDescriptor",
    "NodeKind",
    "TypeKind",
    "is_test",
    "uri_to_path",
    # Config
    "ExplorerConfig",
    "load_yaml_config",
    # Synchronization primitives
    "PathIndex",
    "TrieNode",
    "NodeCache",
    "LoopScheduler",
    "PendingKind",
    "PendingRefresh",
    "RefreshCoalescer",
    "merge_refresh",
    "RebuildGate",
    # Errors
    "BackendError",
    "BackendUnavailableError",
    "ConfigError",
    "ExplorerError",
    "MalformedDescriptorError",
]


def __getattr__(name: str):
    if name == "ExplorerSession":
        from .session import ExplorerSession
        return ExplorerSession
    if name == "DependencyDataProvider":
        from .data_provider import DependencyDataProvider
        return DependencyDataProvider
    if name == "DependencyExplorer":
        from .explorer import DependencyExplorer
        return DependencyExplorer
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
