"""Turn a flat listing into a forest of :class:`TreeNode` objects.

All functions here are pure and synchronous; they accept anything shaped like
a listing entry (``id``, ``parent``, ``title``, ``tags``, ``is_folder``), so a
stale or hand-built listing works as well as a fresh one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence, TypeVar


class TreeItem(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def parent(self) -> str | None: ...

    @property
    def title(self) -> str: ...

    @property
    def tags(self) -> Sequence[str]: ...

    is_folder: bool


T = TypeVar("T", bound=TreeItem)


@dataclass
class TreeNode:
    meta: TreeItem
    children: list["TreeNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.meta.id


def _sort_key(node: TreeNode) -> tuple[int, str, str]:
    return (0 if node.meta.is_folder else 1, node.meta.title.casefold(), node.meta.id)


def build_tree(entries: Sequence[TreeItem]) -> list[TreeNode]:
    """Group *entries* by parent into a sorted forest.

    Entries whose parent is ``None`` or missing from the listing become roots.
    Each id is placed exactly once, even when the input contains a parent
    cycle: members of a cycle with no way up to a root are promoted to roots
    and the walk never re-enters a node it has already placed.
    """
    nodes: dict[str, TreeNode] = {}
    for entry in entries:
        nodes.setdefault(entry.id, TreeNode(meta=entry))

    children_of: dict[str, list[TreeNode]] = {}
    roots: list[TreeNode] = []
    for node in nodes.values():
        parent = node.meta.parent
        if parent and parent != node.id and parent in nodes:
            children_of.setdefault(parent, []).append(node)
        else:
            roots.append(node)

    placed: set[str] = set()

    def attach(root: TreeNode) -> None:
        placed.add(root.id)
        stack = [root]
        while stack:
            current = stack.pop()
            for child in children_of.get(current.id, []):
                if child.id in placed:
                    continue
                placed.add(child.id)
                current.children.append(child)
                stack.append(child)

    for root in roots:
        attach(root)
    for node in nodes.values():
        if node.id not in placed:
            roots.append(node)
            attach(node)

    _sort(roots)
    return roots


def _sort(nodes: list[TreeNode]) -> None:
    stack = [nodes]
    while stack:
        level = stack.pop()
        level.sort(key=_sort_key)
        stack.extend(n.children for n in level if n.children)


def find_node(tree: Sequence[TreeNode], doc_id: str) -> TreeNode | None:
    """Depth-first lookup of *doc_id* in a forest."""
    stack = list(reversed(tree))
    while stack:
        node = stack.pop()
        if node.id == doc_id:
            return node
        stack.extend(reversed(node.children))
    return None


def get_ancestors(entries: Sequence[T], doc_id: str) -> list[T]:
    """Return the parent chain of *doc_id*, root first (breadcrumb order)."""
    by_id = {e.id: e for e in entries}
    ancestors: list[T] = []
    seen = {doc_id}
    current = by_id.get(doc_id)
    while current is not None and current.parent:
        parent = by_id.get(current.parent)
        if parent is None or parent.id in seen:
            break
        seen.add(parent.id)
        ancestors.insert(0, parent)
        current = parent
    return ancestors


def filter_by_tag(entries: Sequence[T], tag: str) -> list[T]:
    """Entries carrying *tag*, plus their ancestors so the tree stays connected."""
    keep: set[str] = set()
    for entry in entries:
        if tag in entry.tags:
            keep.add(entry.id)
            keep.update(a.id for a in get_ancestors(entries, entry.id))
    return [e for e in entries if e.id in keep]
