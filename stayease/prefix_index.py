"""
Prefix trie mapping city-name prefixes to listing ids.
"""

from __future__ import annotations

from typing import Iterable


class TrieNode:
    """Single node in the prefix trie."""

    __slots__ = ("children", "ids", "terminal_ids")

    def __init__(self):
        self.children: dict[str, TrieNode] = {}
        # Every id whose key passes through this node.
        self.ids: set[str] = set()
        # Ids whose key ends exactly here.
        self.terminal_ids: set[str] = set()

    @property
    def is_terminal(self) -> bool:
        return bool(self.terminal_ids)


class PrefixIndex:
    """
    Case-insensitive prefix index over listing keys (city names).

    Each insert stores the id on every node along the key's path, so a search
    only has to walk the prefix and read the set at the node it lands on.
    Not thread-safe on its own; callers serialize mutations.
    """

    def __init__(self):
        self.root = TrieNode()

    def insert(self, key: str, listing_id: str) -> None:
        key = _fold(key)
        if not key:
            return
        node = self.root
        for ch in key:
            child = node.children.get(ch)
            if child is None:
                child = TrieNode()
                node.children[ch] = child
            node = child
            node.ids.add(listing_id)
        node.terminal_ids.add(listing_id)

    def delete(self, key: str, listing_id: str) -> None:
        key = _fold(key)
        if not key:
            return
        end = self._walk(key)
        # Only a pair that was actually inserted may touch the path.
        if end is None or listing_id not in end.terminal_ids:
            return
        self._delete(self.root, key, listing_id, 0)

    def _delete(self, node: TrieNode, key: str, listing_id: str, i: int) -> None:
        if i == len(key):
            node.terminal_ids.discard(listing_id)
            return
        child = node.children[key[i]]
        self._delete(child, key, listing_id, i + 1)
        # The same id may still be reachable through another key.
        if listing_id not in child.terminal_ids and not any(
            listing_id in grandchild.ids for grandchild in child.children.values()
        ):
            child.ids.discard(listing_id)
        if not child.ids:
            del node.children[key[i]]

    def search(self, prefix: str) -> set[str]:
        node = self._walk(_fold(prefix))
        if node is None or node is self.root:
            return set()
        return set(node.ids)

    def insert_many(self, items: Iterable[tuple[str, str]]) -> int:
        count = 0
        for key, listing_id in items:
            self.insert(key, listing_id)
            count += 1
        return count

    def clear(self) -> None:
        self.root = TrieNode()

    def node_count(self) -> int:
        """Number of nodes below the root."""
        count = 0
        stack = list(self.root.children.values())
        while stack:
            node = stack.pop()
            count += 1
            stack.extend(node.children.values())
        return count

    def _walk(self, s: str) -> TrieNode | None:
        node = self.root
        for ch in s:
            node = node.children.get(ch)
            if node is None:
                return None
        return node


def _fold(value: str | None) -> str:
    return (value or "").casefold()
