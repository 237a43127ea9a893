"""Recording context — which node is currently being evaluated.

Uses contextvars to track the node whose function is running, so that every
``read()`` issued from inside it can be captured as a dependency edge.
The variable is per thread and per task: sessions evaluating in parallel
never see each other's recorders.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from dashflow.graph import DependencyGraph
    from dashflow.node import NodeKind


class Recorder:
    """The node being evaluated and the graph it belongs to."""

    __slots__ = ("graph", "node_id", "kind", "reads")

    def __init__(self, graph: DependencyGraph, node_id: str, kind: NodeKind) -> None:
        self.graph = graph
        self.node_id = node_id
        self.kind = kind
        # Dependencies in the order they were first read.
        self.reads: dict[str, None] = {}

    def __repr__(self) -> str:
        return f"Recorder({self.node_id!r})"


# When set, reads against ``graph`` register an edge into ``node_id``.
current_recorder: contextvars.ContextVar[Recorder | None] = contextvars.ContextVar(
    "current_recorder", default=None
)


def recorder_for(graph: DependencyGraph) -> Recorder | None:
    """The active recorder if it belongs to ``graph``, else None."""
    recorder = current_recorder.get()
    if recorder is not None and recorder.graph is graph:
        return recorder
    return None


@contextmanager
def recording(recorder: Recorder) -> Iterator[Recorder]:
    """Capture reads as edges into ``recorder.node_id`` for the block."""
    token = current_recorder.set(recorder)
    try:
        yield recorder
    finally:
        current_recorder.reset(token)


@contextmanager
def untracked() -> Iterator[None]:
    """Read values without registering dependencies.

    Usage:
        with untracked():
            label = session.read("units")  # no edge recorded
    """
    token = current_recorder.set(None)
    try:
        yield
    finally:
        current_recorder.reset(token)
