"""Invalidation — dirty flags pushed down the graph.

Marking is eager and conservative: a dirty node is one that *may* be stale.
Whether it really recomputes is decided later, on read, by the Evaluator.
"""

from __future__ import annotations

from dashflow.graph import DependencyGraph
from dashflow.node import Node, NodeKind


class InvalidationTracker:
    """Holds dirty/clean status for the nodes of one graph."""

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph
        # Sources written since the last completed flush.
        self._written: set[str] = set()

    def mark_dirty(self, node_id: str) -> list[Node]:
        """Dirty ``node_id`` and every transitive dependent.

        The starting node is always processed, so a Source written twice in
        one batch re-dirties a dependent that was read in between. Dependents
        that are already dirty stop the walk; each node is visited at most
        once. Returns the nodes whose flag flipped, in visit order.
        """
        root = self._graph.node(node_id)
        flipped: list[Node] = []
        if root.kind is NodeKind.SOURCE:
            self._written.add(node_id)
        if not root.dirty:
            root.dirty = True
            flipped.append(root)

        stack = list(root.outbound)
        while stack:
            node = self._graph.node(stack.pop())
            if node.dirty:
                continue
            node.dirty = True
            flipped.append(node)
            stack.extend(node.outbound)
        return flipped

    def is_dirty(self, node_id: str) -> bool:
        return self._graph.node(node_id).dirty

    def dirty_nodes(self) -> set[str]:
        return {node.id for node in self._graph if node.dirty}

    @property
    def written(self) -> frozenset[str]:
        """Sources written since the last completed flush."""
        return frozenset(self._written)

    def settle(self) -> None:
        """Clear Source flags once a flush has completed."""
        for node_id in self._written:
            node = self._graph.get(node_id)
            if node is not None:
                node.dirty = False
        self._written.clear()
