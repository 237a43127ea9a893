"""Sessions — one isolated graph per user interaction context.

A Session owns its DependencyGraph, InvalidationTracker, Evaluator and
FlushScheduler. Nothing is shared between sessions, so two users of the same
dashboard can recompute in parallel threads. Within a session every public
operation holds the session's re-entrant lock, so evaluations never overlap.

SessionRegistry maps connection keys to sessions: connect builds a session
and runs the dashboard's wiring on it, disconnect disposes it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from contextlib import AbstractContextManager
from typing import Any, Callable, TypeVar

from dashflow._errors import NodeInUseError, NodeKindError, SessionClosedError
from dashflow.action import transaction
from dashflow.config import EngineConfig
from dashflow.evaluator import Evaluator
from dashflow.graph import DependencyGraph
from dashflow.invalid import MISSING
from dashflow.invalidation import InvalidationTracker
from dashflow.node import Node, NodeKind, ObserverMode
from dashflow.scheduler import FlushScheduler

logger = logging.getLogger("dashflow.session")

R = TypeVar("R")
F = TypeVar("F", bound=Callable[..., Any])

def _as_inputs(inputs: Iterable[str] | str | None) -> tuple[str, ...] | None:
    if inputs is None:
        return None
    if isinstance(inputs, str):
        return (inputs,)
    return tuple(inputs)


class Session:
    """The full reactive graph and scheduler for one user.

    Usage:
        session = Session()
        session.define_source("height", 1.8)
        session.define_source("weight", 81.0)
        session.define_derived(
            "bmi", lambda: session.read("weight") / session.read("height") ** 2
        )
        session.read("bmi")  # 25.0

        with session.batch():
            session.write("height", 1.6)
            session.write("weight", 64.0)
    """

    def __init__(self, config: EngineConfig | None = None, *, name: str | None = None) -> None:
        self.name = name or f"session-{id(self):x}"
        self.config = config or EngineConfig()
        self.graph = DependencyGraph()
        self.tracker = InvalidationTracker(self.graph)
        self.evaluator = Evaluator(self.graph, self.config)
        self.scheduler = FlushScheduler(self.graph, self.tracker, self.evaluator, self.config)
        self.lock = threading.RLock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"session {self.name!r} is closed")

    # --- Registration ---

    def define_source(
        self,
        node_id: str,
        value: Any = MISSING,
        *,
        validator: Callable[[Any], Any] | None = None,
    ) -> str:
        """Register a writable leaf. ``validator`` may reject values as Invalid."""
        with self.lock:
            self._check_open()
            node = self.graph.add(Node.source(node_id, validator=validator))
            self.evaluator.store(node, value)
        return node_id

    def define_derived(
        self,
        node_id: str,
        fn: Callable[..., Any],
        *,
        inputs: Iterable[str] | str | None = None,
    ) -> str:
        """Register a lazy, memoized computation.

        Without ``inputs``, ``fn`` takes no arguments and reads what it needs
        through ``session.read``. With ``inputs``, the listed nodes are read in
        order and passed positionally; ``fn`` is skipped entirely when any of
        them is Invalid.
        """
        with self.lock:
            self._check_open()
            self.graph.add(Node.derived(node_id, fn, inputs=_as_inputs(inputs)))
        return node_id

    def define_observer(
        self,
        node_id: str,
        fn: Callable[..., Any],
        *,
        mode: ObserverMode | str = ObserverMode.REACTIVE,
        trigger_id: str | None = None,
        inputs: Iterable[str] | str | None = None,
    ) -> str:
        """Register a side effect.

        ``mode="reactive"`` fires now (or when the enclosing batch ends) and
        again after every flush in which something it read changed.
        ``mode="trigger"`` fires only on ``trigger(trigger_id)``.
        Observers receive Invalid values as-is and should render them.
        """
        mode = ObserverMode(mode)
        if mode is ObserverMode.TRIGGER and trigger_id is None:
            raise ValueError("trigger observers need a trigger_id")
        if mode is ObserverMode.REACTIVE and trigger_id is not None:
            raise ValueError("reactive observers do not take a trigger_id")
        with self.lock:
            self._check_open()
            self.graph.add(
                Node.observer(
                    node_id, fn, mode=mode, trigger_id=trigger_id, inputs=_as_inputs(inputs)
                )
            )
            if mode is ObserverMode.REACTIVE:
                self.scheduler.schedule(node_id)
        return node_id

    def derived(
        self, node_id: str | None = None, *, inputs: Iterable[str] | str | None = None
    ) -> Callable[[Callable[..., Any]], str]:
        """Decorator form of define_derived. Returns the node id.

        Usage:
            @session.derived(inputs=("weight", "height"))
            def bmi(weight, height):
                return weight / height ** 2

            session.read(bmi)  # bmi is now the string "bmi"
        """

        def decorate(fn: Callable[..., Any]) -> str:
            return self.define_derived(node_id or fn.__name__, fn, inputs=inputs)

        return decorate

    def observer(
        self,
        node_id: str | None = None,
        *,
        mode: ObserverMode | str = ObserverMode.REACTIVE,
        trigger_id: str | None = None,
        inputs: Iterable[str] | str | None = None,
    ) -> Callable[[Callable[..., Any]], str]:
        """Decorator form of define_observer. Returns the node id."""

        def decorate(fn: Callable[..., Any]) -> str:
            return self.define_observer(
                node_id or fn.__name__, fn, mode=mode, trigger_id=trigger_id, inputs=inputs
            )

        return decorate

    def remove(self, node_id: str) -> None:
        """Unregister a node nothing depends on."""
        with self.lock:
            self._check_open()
            node = self.graph.node(node_id)
            if node.outbound:
                raise NodeInUseError(
                    f"{node_id!r} is read by {', '.join(sorted(node.outbound))}"
                )
            self.scheduler.discard(node_id)
            self.graph.remove(node_id)

    # --- Reads and writes ---

    def read(self, node_id: str) -> Any:
        """Latest value of a Source or Derived node, or an Invalid marker."""
        with self.lock:
            self._check_open()
            return self.evaluator.read(node_id)

    def write(self, node_id: str, value: Any) -> None:
        """Write a Source. Always dirties its dependents, even for an equal value."""
        with self.lock:
            self._check_open()
            node = self.graph.node(node_id)
            if node.kind is not NodeKind.SOURCE:
                raise NodeKindError(f"{node_id!r} is a {node.kind.value}, only sources are writable")

            def apply() -> list[Node]:
                # Deferred writes run later; the node may be gone by then.
                current = self.graph.node(node_id)
                self.evaluator.store(current, value)
                return self.tracker.mark_dirty(node_id)

            self.scheduler.write(apply)

    def write_many(self, values: Mapping[str, Any]) -> None:
        """Write several Sources as one batch."""
        with self.batch():
            for node_id, value in values.items():
                self.write(node_id, value)

    def batch(self) -> AbstractContextManager[None]:
        """Group writes so observers see them as one atomic update."""
        return transaction(self)

    def with_batch(self, fn: Callable[[], R]) -> R:
        """Run ``fn`` inside a batch and return its result."""
        with self.batch():
            return fn()

    def trigger(self, trigger_id: str) -> None:
        """Fire every trigger observer bound to ``trigger_id``."""
        with self.lock:
            self._check_open()
            self.scheduler.trigger(trigger_id)

    # --- Introspection ---

    def is_dirty(self, node_id: str) -> bool:
        with self.lock:
            self._check_open()
            return self.tracker.is_dirty(node_id)

    def node_ids(self) -> list[str]:
        with self.lock:
            self._check_open()
            return [node.id for node in self.graph]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.graph

    # --- Lifecycle ---

    def dispose(self) -> None:
        """Drop every node. Further operations raise SessionClosedError."""
        with self.lock:
            if self._closed:
                return
            self._closed = True
            self.scheduler.reset()
            self.graph.clear()

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self.graph)} nodes"
        return f"Session({self.name!r}, {state})"


class SessionRegistry:
    """Connection key -> Session, one per connected user.

    ``setup(session)`` wires the dashboard's fixed graph on every connect.
    """

    def __init__(
        self,
        setup: Callable[[Session], Any] | None = None,
        *,
        config: EngineConfig | None = None,
    ) -> None:
        self._setup = setup
        self._config = config
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def connect(self, key: str) -> Session:
        """Create and wire the session for ``key``. Reconnecting returns the live one."""
        with self._lock:
            existing = self._sessions.get(key)
            if existing is not None:
                return existing
            session = Session(self._config, name=key)
            if self._setup is not None:
                try:
                    self._setup(session)
                except Exception:
                    session.dispose()
                    raise
            self._sessions[key] = session
        logger.info("Session %r connected (%d nodes)", key, len(session.graph))
        return session

    def get(self, key: str) -> Session:
        with self._lock:
            return self._sessions[key]

    def disconnect(self, key: str) -> None:
        """Dispose the session for ``key``. Unknown keys are ignored."""
        with self._lock:
            session = self._sessions.pop(key, None)
        if session is not None:
            session.dispose()
            logger.info("Session %r disconnected", key)

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.dispose()

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
