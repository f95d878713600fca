"""SceneTree — arena of loaded node records keyed by global index.

Parent and child links are plain indices into the arena and are
resolved on lookup. The tree tolerates partial loading: a link to a node
whose page has not been merged yet resolves to a ``Pending`` marker.
LOD-driven descent is left to callers; they walk ``children_of`` and
compare ``lod_threshold`` against their own view budget.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from loguru import logger

from scenelayer.errors import MultipleRoots, NoRoot, Pending
from scenelayer.models import NodePage, NodeRecord
from scenelayer.paging import page_of


@dataclass(frozen=True)
class LinkMismatch:
    """A parent lists a child whose own parent index disagrees."""

    parent: int
    child: int
    child_parent: int | None


class SceneTree:
    """Owner of every loaded NodeRecord."""

    def __init__(self) -> None:
        self._nodes: dict[int, NodeRecord] = {}
        self._lock = threading.Lock()
        self.conflicts: int = 0

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, index: object) -> bool:
        return index in self._nodes

    def get(self, index: int) -> NodeRecord | None:
        return self._nodes.get(index)

    def indices(self) -> list[int]:
        """Loaded global indices, ascending."""
        return sorted(self._nodes)

    def insert(self, page: NodePage) -> int:
        """Merge every record of ``page`` into the arena.

        A record whose index is already loaded replaces the old one and
        is logged as a conflict.

        Returns:
            Number of records merged.
        """
        with self._lock:
            for node in page.nodes:
                if node.index in self._nodes:
                    self.conflicts += 1
                    logger.warning(f"Node {node.index} loaded twice; replacing earlier record")
                self._nodes[node.index] = node
            return len(page.nodes)

    def root(self) -> NodeRecord:
        """Return the single loaded node without a parent.

        Raises:
            NoRoot: No loaded node is parentless.
            MultipleRoots: More than one loaded node is parentless.
        """
        with self._lock:
            roots = [n for n in self._nodes.values() if n.parent_index is None]
        if not roots:
            raise NoRoot()
        if len(roots) > 1:
            raise MultipleRoots(sorted(n.index for n in roots))
        return roots[0]

    def parent_of(self, node: NodeRecord) -> NodeRecord | Pending | None:
        """Parent record, ``None`` for the root, ``Pending`` if not loaded."""
        if node.parent_index is None:
            return None
        parent = self._nodes.get(node.parent_index)
        if parent is None:
            return Pending(node.parent_index)
        return parent

    def children_of(self, node: NodeRecord) -> list[NodeRecord | Pending]:
        """Children in listed order; unloaded ones appear as ``Pending``."""
        result: list[NodeRecord | Pending] = []
        for index in node.children:
            child = self._nodes.get(index)
            result.append(child if child is not None else Pending(index))
        return result

    @staticmethod
    def is_root(node: NodeRecord) -> bool:
        return node.is_root()

    @staticmethod
    def is_leaf(node: NodeRecord) -> bool:
        return node.is_leaf()

    def check_links(self) -> list[LinkMismatch]:
        """Report loaded parent/child pairs that disagree with each other.

        Children not loaded yet are skipped. Nothing is repaired.
        """
        mismatches = []
        with self._lock:
            snapshot = dict(self._nodes)
        for parent in snapshot.values():
            for index in parent.children:
                child = snapshot.get(index)
                if child is not None and child.parent_index != parent.index:
                    mismatches.append(LinkMismatch(parent.index, index, child.parent_index))
        for m in mismatches:
            logger.warning(
                f"Node {m.parent} lists child {m.child}, but its parent is {m.child_parent}"
            )
        return mismatches

    def pending_pages(self, nodes_per_page: int) -> list[int]:
        """Pages holding nodes that are referenced but not loaded."""
        with self._lock:
            snapshot = dict(self._nodes)
        missing: set[int] = set()
        for node in snapshot.values():
            refs = list(node.children)
            if node.parent_index is not None:
                refs.append(node.parent_index)
            missing.update(i for i in refs if i not in snapshot)
        return sorted({page_of(i, nodes_per_page) for i in missing})
