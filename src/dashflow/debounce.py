"""Debounced writes — coalesce rapid input into one batch.

A user typing into four fields produces a burst of writes. The Debouncer
holds them back until the input goes quiet, lets a newer value for a field
supersede an older one that was never flushed, and then applies everything
in a single batch.

Uses threading.Timer (daemon=True). Each new write cancels the previous
timer, so only the end of a burst commits. The commit runs on the timer
thread under the session lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from dashflow._errors import NodeKindError, NodeLookupError
from dashflow.node import NodeKind
from dashflow.session import Session

logger = logging.getLogger("dashflow.debounce")


class Debouncer:
    """Pending Source writes for one session, committed after a quiet period."""

    def __init__(self, session: Session, seconds: float) -> None:
        self._session = session
        self._seconds = seconds
        self._pending: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._disposed = False

    @property
    def pending(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._pending)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def write(self, node_id: str, value: Any) -> None:
        """Hold a write back; restart the quiet-period timer."""
        if self._disposed:
            return
        node = self._session.graph.get(node_id)
        if node is None:
            raise NodeLookupError(node_id)
        # Checked now: a bad id at commit time would sink the whole batch.
        if node.kind is not NodeKind.SOURCE:
            raise NodeKindError(f"{node_id!r} is a {node.kind.value}, only sources are writable")
        with self._lock:
            if node_id in self._pending:
                logger.debug("Superseding pending write to %r", node_id)
            self._pending[node_id] = value
            self._restart_timer()

    def _restart_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        timer = threading.Timer(self._seconds, self.commit)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def commit(self) -> int:
        """Apply all pending writes now, as one batch. Returns how many."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            writes, self._pending = self._pending, {}
        if writes and not self._session.closed:
            self._session.write_many(writes)
        return len(writes)

    def cancel(self) -> None:
        """Drop pending writes without applying them."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending.clear()

    def dispose(self) -> None:
        self._disposed = True
        self.cancel()
