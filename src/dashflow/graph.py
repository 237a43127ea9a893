"""Dependency graph — nodes and the edges discovered between them.

Edges point from a dependent to the dependency it read. They are never
declared ahead of time: the Evaluator records them while a node's function
runs (see ``recording``) and drops them again before the next run.

The relation stays acyclic. ``register_edge`` checks reachability before it
touches anything, so a rejected edge leaves the graph exactly as it was.
"""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from typing import Iterator

from dashflow._errors import CycleError, DuplicateNodeError, NodeKindError, NodeLookupError
from dashflow._tracking import Recorder, recording as _recording
from dashflow.node import Node, NodeKind


class DependencyGraph:
    """All nodes of one session and the edges between them."""

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        # Registration order, used to break ties when ordering observers.
        self._seq = itertools.count()

    # --- Nodes ---

    def add(self, node: Node) -> Node:
        if node.id in self._nodes:
            raise DuplicateNodeError(f"node {node.id!r} is already registered")
        node.seq = next(self._seq)
        self._nodes[node.id] = node
        return node

    def remove(self, node_id: str) -> Node:
        """Unregister a node and drop every edge touching it."""
        node = self.node(node_id)
        self.clear_inbound_edges(node_id)
        for dependent_id in node.outbound:
            self._nodes[dependent_id].inbound.discard(node_id)
        node.outbound.clear()
        del self._nodes[node_id]
        return node

    def clear(self) -> None:
        """Drop every node and edge."""
        self._nodes.clear()

    def node(self, node_id: str) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NodeLookupError(node_id) from None

    def get(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)

    # --- Edges ---

    def register_edge(self, dependent: str, dependency: str) -> None:
        """Record that ``dependent`` read ``dependency``.

        Raises CycleError if the edge would close a cycle; the graph is left
        unchanged in that case.
        """
        dep_node = self.node(dependent)
        src_node = self.node(dependency)
        if dep_node.kind is NodeKind.SOURCE:
            raise NodeKindError(f"source {dependent!r} cannot depend on other nodes")
        if src_node.kind is NodeKind.OBSERVER:
            raise NodeKindError(f"observer {dependency!r} cannot be read by {dependent!r}")
        if dependency in dep_node.inbound:
            return

        path = self._path(dependent, dependency)
        if path is not None:
            # Report in depends-on order: dependent -> dependency -> ... -> dependent.
            raise CycleError((dependent, *reversed(path)))

        dep_node.inbound.add(dependency)
        src_node.outbound.add(dependent)

    def clear_inbound_edges(self, node_id: str) -> None:
        """Forget everything ``node_id`` depended on."""
        node = self.node(node_id)
        for dependency_id in node.inbound:
            dependency = self._nodes.get(dependency_id)
            if dependency is not None:
                dependency.outbound.discard(node_id)
        node.inbound.clear()

    def edges(self) -> set[tuple[str, str]]:
        """Snapshot of ``(dependent, dependency)`` pairs."""
        return {(node.id, dep) for node in self._nodes.values() for dep in node.inbound}

    # --- Traversal ---

    def transitive_dependents(self, node_id: str) -> set[str]:
        """Every node reachable from ``node_id`` along outbound edges."""
        seen: set[str] = set()
        stack = list(self.node(node_id).outbound)
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._nodes[current].outbound)
        return seen

    def depth(self, node_id: str, memo: dict[str, int] | None = None) -> int:
        """Length of the longest inbound path. Sources and unread nodes are 0."""
        if memo is None:
            memo = {}
        if node_id in memo:
            return memo[node_id]
        node = self.node(node_id)
        result = 0
        for dependency_id in node.inbound:
            result = max(result, self.depth(dependency_id, memo) + 1)
        memo[node_id] = result
        return result

    def _path(self, start: str, goal: str) -> tuple[str, ...] | None:
        """Outbound path from ``start`` to ``goal``, or None.

        When ``goal`` depends transitively on ``start`` an edge
        ``start -> goal`` would close a cycle.
        """
        if start == goal:
            return (start,)
        parents: dict[str, str] = {}
        stack = [start]
        seen = {start}
        while stack:
            current = stack.pop()
            for nxt in self._nodes[current].outbound:
                if nxt in seen:
                    continue
                parents[nxt] = current
                if nxt == goal:
                    path = [goal]
                    while path[-1] != start:
                        path.append(parents[path[-1]])
                    return tuple(reversed(path))
                seen.add(nxt)
                stack.append(nxt)
        return None

    # --- Recording ---

    @contextmanager
    def recording(self, node_id: str) -> Iterator[Recorder]:
        """Capture every read made during the block as an edge into ``node_id``."""
        node = self.node(node_id)
        with _recording(Recorder(self, node_id, node.kind)) as recorder:
            yield recorder
