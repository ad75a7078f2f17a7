"""Registry of materialized explorer nodes keyed by resource location."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .models import uri_to_path
from .trie import PathIndex

if TYPE_CHECKING:
    from .nodes import ExplorerNode

logger = logging.getLogger(__name__)


class NodeCache:
    """Location-keyed cache of explorer nodes.

    Lookups are lock-free. Only the refresh fire step and the gate-guarded
    rebuild/reveal paths write to it.
    """

    def __init__(self) -> None:
        self._index: PathIndex[ExplorerNode] = PathIndex()

    def save(self, nodes: Iterable[ExplorerNode]) -> None:
        """Record each node under its location; location-less nodes are skipped."""
        for node in nodes:
            self._index.insert(node)

    def get_node(self, location: str) -> ExplorerNode | None:
        """Exact lookup by URI or filesystem path."""
        found = self._index.find(uri_to_path(location))
        return found.value if found is not None else None

    def find_best_match(self, location: str) -> ExplorerNode | None:
        """Nearest cached node at or above *location*."""
        found = self._index.find_first_ancestor_with_value(uri_to_path(location))
        return found.value if found is not None else None

    def is_covered(self, location: str) -> bool:
        """True when *location* or one of its ancestors is cached."""
        found = self._index.find(uri_to_path(location), return_early=True)
        return found is not None and found.value is not None

    def remove_subtree(self, node: ExplorerNode | None = None) -> None:
        """Evict *node* and all cached descendants; None evicts everything."""
        if node is None:
            self._index.clear()
            logger.debug("NodeCache: evicted all nodes")
            return
        if not node.uri:
            return
        trie_node = self._index.find(uri_to_path(node.uri))
        if trie_node is None:
            return
        evicted = sum(1 for _ in trie_node.iter_values())
        trie_node.clear()
        logger.debug("NodeCache: evicted %d node(s) under %s", evicted, node.uri)

    def __len__(self) -> int:
        return sum(1 for _ in self._index.root.iter_values())
