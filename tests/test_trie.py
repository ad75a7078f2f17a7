"""Tests for the path-segment trie."""

from __future__ import annotations

from deptree.engine.trie import PathIndex


class Item:
    def __init__(self, uri: str | None) -> None:
        self.uri = uri

    def __repr__(self) -> str:
        return f"Item({self.uri!r})"


def test_find_exact_path():
    index = PathIndex()
    proj = Item("file:///ws/proj")
    index.insert(proj)

    assert index.find("/ws/proj").value is proj
    # Intermediate segments exist as valueless placeholders.
    assert index.find("/ws") is not None
    assert index.find("/ws").value is None
    assert index.find("/ws/other") is None


def test_last_insert_wins():
    index = PathIndex()
    first = Item("file:///ws/proj")
    second = Item("file:///ws/proj")
    index.insert(first)
    index.insert(second)
    assert index.find("/ws/proj").value is second


def test_items_without_location_are_ignored():
    index = PathIndex()
    index.insert(Item(None))
    index.insert(Item(""))
    assert index.root.children == {}


def test_find_return_early_stops_at_first_valued_ancestor():
    index = PathIndex()
    proj = Item("file:///ws/proj")
    foo = Item("file:///ws/proj/pkg/Foo.java")
    index.insert(proj)
    index.insert(foo)

    found = index.find("/ws/proj/pkg/Foo.java", return_early=True)
    assert found is not None and found.value is proj
    # Without a valued ancestor the walk is the same as a plain find.
    assert index.find("/ws/proj/nothing", return_early=True).value is proj
    assert index.find("/elsewhere/x", return_early=True) is None


def test_first_ancestor_with_value_picks_deepest():
    index = PathIndex()
    proj = Item("file:///ws/proj")
    pkg = Item("file:///ws/proj/pkg")
    index.insert(proj)
    index.insert(pkg)

    assert index.find_first_ancestor_with_value("/ws/proj/pkg/Foo.java").value is pkg
    assert index.find_first_ancestor_with_value("/ws/proj/docs/a.md").value is proj
    assert index.find_first_ancestor_with_value("/ws/proj/pkg").value is pkg
    assert index.find_first_ancestor_with_value("/ws") is None
    assert index.find_first_ancestor_with_value("/other/place") is None


def test_windows_and_uri_paths_share_segments():
    index = PathIndex()
    item = Item("file:///C:/work/proj")
    index.insert(item)
    assert index.find("C:\\work\\proj").value is item
    assert index.find("C:/work/proj").value is item


def test_clear_drops_everything():
    index = PathIndex()
    item = Item("file:///ws/proj")
    index.insert(item)
    index.clear()
    assert index.find("/ws/proj") is None


def test_trie_node_iter_values_depth_first():
    index = PathIndex()
    items = [
        Item("file:///ws/proj"),
        Item("file:///ws/proj/a"),
        Item("file:///ws/proj/a/b"),
    ]
    for item in items:
        index.insert(item)
    assert list(index.find("/ws/proj").iter_values()) == items
