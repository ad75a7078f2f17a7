"""Path-segment trie indexing materialized tree nodes by location.

Each trie node optionally carries a value (the materialized tree node for
exactly that path) and maps path segments to child trie nodes. Valueless
trie nodes are plain prefixes.
"""
from __future__ import annotations

from typing import Generic, Protocol, TypeVar

from .models import split_path, uri_to_path


class HasUri(Protocol):
    @property
    def uri(self) -> str | None: ...


T = TypeVar("T", bound=HasUri)


class TrieNode(Generic[T]):
    __slots__ = ("value", "children")

    def __init__(self, value: T | None = None) -> None:
        self.value: T | None = value
        self.children: dict[str, TrieNode[T]] = {}

    def clear(self) -> None:
        """Drop the value and every descendant."""
        self.value = None
        self.children = {}

    def iter_values(self):
        """Yield this node's value and all descendant values, depth first."""
        if self.value is not None:
            yield self.value
        for child in self.children.values():
            yield from child.iter_values()


class PathIndex(Generic[T]):
    """Trie keyed by the filesystem path of each value's URI."""

    def __init__(self) -> None:
        self._root: TrieNode[T] = TrieNode()

    @property
    def root(self) -> TrieNode[T]:
        return self._root

    def insert(self, item: T) -> None:
        """Index *item* under its URI's path. Last insert at a path wins."""
        if not item.uri:
            return
        current = self._root
        for segment in split_path(uri_to_path(item.uri)):
            child = current.children.get(segment)
            if child is None:
                child = TrieNode()
                current.children[segment] = child
            current = child
        current.value = item

    def find(self, fs_path: str, return_early: bool = False) -> TrieNode[T] | None:
        """Return the trie node at *fs_path*, or None if a segment is missing.

        With ``return_early`` the walk stops at the first ancestor that
        already carries a value.
        """
        current = self._root
        for segment in split_path(fs_path):
            if return_early and current.value is not None:
                return current
            child = current.children.get(segment)
            if child is None:
                return None
            current = child
        return current

    def find_first_ancestor_with_value(self, fs_path: str) -> TrieNode[T] | None:
        """Deepest trie node on *fs_path* (self included) that has a value."""
        current = self._root
        found: TrieNode[T] | None = None
        for segment in split_path(fs_path):
            child = current.children.get(segment)
            if child is None:
                break
            current = child
            if current.value is not None:
                found = current
        return found

    def clear(self) -> None:
        self._root = TrieNode()
