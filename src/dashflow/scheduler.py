"""Flush scheduling — one coherent pass per external event.

Mutations inside a batch accumulate invalidations; reactive observers fire
once the outermost batch exits, so an observer that depends on several
Sources sees all of them updated together.

Events that arrive while a flush is running (an observer effect writing a
Source or firing a trigger) are queued and processed in order after the
current pass, never interleaved with it.
"""

from __future__ import annotations

import logging
from collections import deque
from contextlib import contextmanager
from typing import Callable, Iterator

from dashflow._errors import FlushOverflowError
from dashflow.config import EngineConfig
from dashflow.evaluator import Evaluator
from dashflow.graph import DependencyGraph
from dashflow.invalidation import InvalidationTracker
from dashflow.node import Node, NodeKind, ObserverMode

logger = logging.getLogger("dashflow.scheduler")

# A deferred write: applies itself and returns the nodes it dirtied.
WriteFn = Callable[[], list[Node]]

_WRITE = "write"
_TRIGGER = "trigger"


class FlushScheduler:
    """Batches invalidations and fires observers for one session."""

    def __init__(
        self,
        graph: DependencyGraph,
        tracker: InvalidationTracker,
        evaluator: Evaluator,
        config: EngineConfig,
    ) -> None:
        self._graph = graph
        self._tracker = tracker
        self._evaluator = evaluator
        self._config = config
        self._batch_depth = 0
        self._flushing = False
        # Reactive observers awaiting this flush, in insertion order.
        self._pending: dict[str, None] = {}
        self._queue: deque[tuple[str, WriteFn | str]] = deque()
        self.flush_count = 0

    @property
    def batching(self) -> bool:
        return self._batch_depth > 0

    @property
    def flushing(self) -> bool:
        return self._flushing

    def pending_count(self) -> int:
        """Observers waiting to fire plus queued events. Useful for testing."""
        return len(self._pending) + len(self._queue)

    def reset(self) -> None:
        """Forget scheduled observers and queued events."""
        self._pending.clear()
        self._queue.clear()

    # --- Batching ---

    def begin_batch(self) -> None:
        """Enter a batching scope. Nested batches are supported."""
        self._batch_depth += 1

    def end_batch(self) -> None:
        """Exit a batching scope. The outermost exit flushes."""
        self._batch_depth -= 1
        if self._batch_depth == 0 and not self._flushing:
            self.flush()

    @contextmanager
    def batch(self) -> Iterator[None]:
        self.begin_batch()
        try:
            yield
        finally:
            self.end_batch()

    # --- Events ---

    def write(self, apply: WriteFn) -> None:
        """Apply a Source write now, or defer it if a flush is running."""
        if self._flushing:
            self._queue.append((_WRITE, apply))
            return
        with self.batch():
            self._collect(apply())

    def trigger(self, trigger_id: str) -> None:
        """Queue a discrete trigger; it fires after any batch in progress."""
        self._queue.append((_TRIGGER, trigger_id))
        if not self.batching and not self._flushing:
            self.flush()

    def schedule(self, node_id: str) -> None:
        """Queue a reactive observer to fire in the next flush."""
        self._pending[node_id] = None
        if not self.batching and not self._flushing:
            self.flush()

    def discard(self, node_id: str) -> None:
        self._pending.pop(node_id, None)

    def _collect(self, dirtied: list[Node]) -> None:
        for node in dirtied:
            if node.is_reactive_observer:
                self._pending[node.id] = None

    # --- Flush ---

    def flush(self) -> None:
        """Fire pending observers, then work through queued events in order."""
        self._flushing = True
        passes = 0
        fired = 0
        try:
            while self._pending or self._queue:
                passes += 1
                if passes > self._config.max_flush_passes:
                    self._pending.clear()
                    self._queue.clear()
                    raise FlushOverflowError(
                        f"flush did not settle after {self._config.max_flush_passes} passes"
                    )
                if self._pending:
                    fired += self._fire_pending()
                    continue

                kind, payload = self._queue.popleft()
                if kind == _TRIGGER:
                    fired += self._fire_trigger(payload)
                    continue
                # Consecutive deferred writes land together as one batch.
                writes = [payload]
                while self._queue and self._queue[0][0] == _WRITE:
                    writes.append(self._queue.popleft()[1])
                for apply in writes:
                    self._collect(apply())
            self._tracker.settle()
        finally:
            self._flushing = False
        self.flush_count += 1
        logger.debug("Flush %d: %d passes, %d observers fired", self.flush_count, passes, fired)

    def _fire_pending(self) -> int:
        memo: dict[str, int] = {}
        ordered = sorted(
            (node_id for node_id in self._pending if node_id in self._graph),
            key=lambda node_id: (
                self._graph.depth(node_id, memo),
                self._graph.node(node_id).seq,
            ),
        )
        fired = 0
        for node_id in ordered:
            self._pending.pop(node_id, None)
            if node_id in self._graph and self._evaluator.fire(node_id):
                fired += 1
        # Drop ids of observers removed while pending.
        for node_id in [n for n in self._pending if n not in self._graph]:
            del self._pending[node_id]
        return fired

    def _fire_trigger(self, trigger_id: str) -> int:
        bound = sorted(
            (
                node
                for node in self._graph
                if node.kind is NodeKind.OBSERVER
                and node.mode is ObserverMode.TRIGGER
                and node.trigger_id == trigger_id
            ),
            key=lambda node: node.seq,
        )
        if not bound:
            logger.debug("Trigger %r has no bound observers", trigger_id)
        for node in bound:
            self._evaluator.fire(node.id)
        return len(bound)
