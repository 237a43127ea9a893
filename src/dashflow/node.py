"""Graph nodes — one class, tagged by kind.

Source, Derived and Observer share the same record: a cached value, a dirty
flag and the inbound/outbound edge sets. The kind decides how the Evaluator
treats them. Nodes hold no behaviour; evaluation lives in the Evaluator and
edge bookkeeping in the DependencyGraph.
"""

from __future__ import annotations

import enum
from typing import Any, Callable

from dashflow.invalid import MISSING

class NodeKind(enum.Enum):
    SOURCE = "source"
    DERIVED = "derived"
    OBSERVER = "observer"


class ObserverMode(enum.Enum):
    REACTIVE = "reactive"
    TRIGGER = "trigger"


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"


# Cached value of a Derived or Observer that never ran.
UNSET = _Unset()


class Node:
    """A Source, Derived or Observer in one session's graph."""

    __slots__ = (
        "id",
        "kind",
        "fn",
        "inputs",
        "mode",
        "trigger_id",
        "validator",
        "value",
        "dirty",
        "inbound",
        "outbound",
        "version",
        "dep_versions",
        "evaluations",
        "seq",
    )

    def __init__(
        self,
        node_id: str,
        kind: NodeKind,
        *,
        fn: Callable[..., Any] | None = None,
        inputs: tuple[str, ...] | None = None,
        mode: ObserverMode | None = None,
        trigger_id: str | None = None,
        validator: Callable[[Any], Any] | None = None,
    ) -> None:
        self.id = node_id
        self.kind = kind
        self.fn = fn
        self.inputs = inputs
        self.mode = mode
        self.trigger_id = trigger_id
        self.validator = validator
        self.value: Any = MISSING if kind is NodeKind.SOURCE else UNSET
        # Sources start clean; Derived and Observer nodes have never run.
        self.dirty = kind is not NodeKind.SOURCE
        self.inbound: set[str] = set()
        self.outbound: set[str] = set()
        self.version = 0
        self.dep_versions: dict[str, int] = {}
        self.evaluations = 0
        # Registration order within the graph, set by DependencyGraph.add.
        self.seq = 0

    @classmethod
    def source(cls, node_id: str, *, validator: Callable[[Any], Any] | None = None) -> Node:
        return cls(node_id, NodeKind.SOURCE, validator=validator)

    @classmethod
    def derived(
        cls,
        node_id: str,
        fn: Callable[..., Any],
        *,
        inputs: tuple[str, ...] | None = None,
    ) -> Node:
        return cls(node_id, NodeKind.DERIVED, fn=fn, inputs=inputs)

    @classmethod
    def observer(
        cls,
        node_id: str,
        fn: Callable[..., Any],
        *,
        mode: ObserverMode = ObserverMode.REACTIVE,
        trigger_id: str | None = None,
        inputs: tuple[str, ...] | None = None,
    ) -> Node:
        return cls(
            node_id, NodeKind.OBSERVER, fn=fn, inputs=inputs, mode=mode, trigger_id=trigger_id
        )

    @property
    def evaluated(self) -> bool:
        """True once the node's function has produced a value."""
        return self.value is not UNSET

    @property
    def is_reactive_observer(self) -> bool:
        return self.kind is NodeKind.OBSERVER and self.mode is ObserverMode.REACTIVE

    def __repr__(self) -> str:
        state = "dirty" if self.dirty else f"cached={self.value!r}"
        return f"Node({self.id!r}, {self.kind.value}, {state})"
