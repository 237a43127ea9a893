"""Evaluator — lazy recomputation with per-evaluation dependency recording.

``read()`` is the only way a node function reaches another node's value.
Inside a recording it registers the edge first and resolves the dependency
second, so dependencies are always fully resolved before their dependent
continues. The recursion order is the dependency order.

Invalid values never raise out of ``read()`` for callers outside the graph.
A Derived function that reads an Invalid dependency is abandoned at that
read and its own value becomes the same Invalid.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from dashflow._errors import (
    ComputationError,
    NodeKindError,
    ValidationError,
    WiringError,
)
from dashflow._tracking import Recorder, recorder_for, untracked
from dashflow.config import EngineConfig
from dashflow.graph import DependencyGraph
from dashflow.invalid import MISSING, Invalid
from dashflow.node import Node, NodeKind, ObserverMode

logger = logging.getLogger("dashflow.evaluator")


class _InvalidDependency(BaseException):
    """Unwinds a Derived function that read an Invalid value.

    A BaseException so that ``except Exception`` inside user code does not
    swallow it.
    """

    def __init__(self, invalid: Invalid) -> None:
        super().__init__(invalid)
        self.invalid = invalid


def _identical(a: Any, b: Any) -> bool:
    """Bit-for-bit sameness for the equality cutoff.

    ``1 == 1.0`` and ``0.0 == -0.0`` hold in Python but a dependent rendering
    either would see a different value, so type and sign must match too.
    Containers compare element-wise under the same rule.
    """
    if a is b:
        return True
    if type(a) is not type(b):
        return False
    if isinstance(a, float):
        return a == b and math.copysign(1.0, a) == math.copysign(1.0, b)
    if isinstance(a, (tuple, list)):
        return len(a) == len(b) and all(_identical(x, y) for x, y in zip(a, b))
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(_identical(a[k], b[k]) for k in a)
    try:
        return bool(a == b)
    except Exception:
        return False


class Evaluator:
    """Resolves node values for one graph."""

    def __init__(self, graph: DependencyGraph, config: EngineConfig) -> None:
        self._graph = graph
        self._config = config

    # --- Sources ---

    def store(self, node: Node, value: Any) -> None:
        """Normalize and store a value written to a Source."""
        if value is MISSING or (value is None and self._config.none_is_missing):
            node.value = Invalid("missing input", source=node.id)
        elif node.validator is not None:
            node.value = self._validated(node, value)
        else:
            node.value = value
        # Writes are events: bump even when the value is unchanged.
        node.version += 1

    def _validated(self, node: Node, value: Any) -> Any:
        try:
            ok = node.validator(value)
        except ValidationError as exc:
            return Invalid(str(exc), source=node.id)
        if not ok:
            return Invalid(f"{value!r} rejected by validator", source=node.id)
        return value

    # --- Reads ---

    def read(self, node_id: str) -> Any:
        """Current value of ``node_id``, recomputing it first if dirty."""
        node = self._graph.node(node_id)
        if node.kind is NodeKind.OBSERVER:
            raise NodeKindError(f"observer {node_id!r} has no readable value")

        recorder = recorder_for(self._graph)
        if recorder is not None:
            self._graph.register_edge(recorder.node_id, node_id)
            recorder.reads.setdefault(node_id)

        value = self._resolve(node)

        if (
            recorder is not None
            and recorder.kind is NodeKind.DERIVED
            and isinstance(value, Invalid)
        ):
            raise _InvalidDependency(value)
        return value

    def _resolve(self, node: Node) -> Any:
        if node.kind is NodeKind.DERIVED and node.dirty:
            if self._can_skip(node):
                node.dirty = False
            else:
                self._recompute(node)
        return node.value

    def _can_skip(self, node: Node) -> bool:
        """Equality cutoff: True when no recorded dependency actually moved.

        Dependencies are resolved in the order the function last read them
        and the check stops at the first one whose version changed.
        """
        if not self._config.equality_cutoff or not node.evaluated:
            return False
        for dep_id, seen in node.dep_versions.items():
            dep = self._graph.get(dep_id)
            if dep is None:
                return False
            self._resolve(dep)
            if dep.version != seen:
                return False
        return True

    def _recompute(self, node: Node) -> None:
        previous = node.value
        self._graph.clear_inbound_edges(node.id)
        with self._graph.recording(node.id) as recorder:
            try:
                value = self._invoke(node)
            except _InvalidDependency as exc:
                value = exc.invalid
            except ValidationError as exc:
                logger.debug("Derived %r rejected its inputs: %s", node.id, exc)
                value = Invalid(str(exc), source=node.id)
            except WiringError:
                raise
            except Exception as exc:
                logger.exception("Computation of %r failed", node.id)
                error = ComputationError(node.id, exc)
                value = Invalid(str(error), source=node.id, error=error)

        node.value = value
        node.dirty = False
        node.evaluations += 1
        self._snapshot_versions(node, recorder)
        if not (
            self._config.equality_cutoff
            and node.evaluations > 1
            and _identical(value, previous)
        ):
            node.version += 1

    def _invoke(self, node: Node) -> Any:
        if node.inputs is None:
            return node.fn()
        return node.fn(*[self.read(dep_id) for dep_id in node.inputs])

    def _snapshot_versions(self, node: Node, recorder: Recorder) -> None:
        # Read order, so _can_skip resolves dependencies the way the function did.
        node.dep_versions = {
            dep_id: self._graph.node(dep_id).version
            for dep_id in recorder.reads
            if dep_id in node.inbound
        }

    # --- Observers ---

    def fire(self, node_id: str) -> bool:
        """Run an observer's effect. Returns False when cutoff skipped it.

        Reactive observers re-record their dependencies. Trigger observers
        read untracked: they run on their trigger, not on changes.
        """
        node = self._graph.node(node_id)
        if node.kind is not NodeKind.OBSERVER:
            raise NodeKindError(f"{node_id!r} is a {node.kind.value}, not an observer")

        if node.mode is ObserverMode.TRIGGER:
            with untracked():
                self._run_effect(node)
            return True

        if self._can_skip(node):
            node.dirty = False
            return False
        self._graph.clear_inbound_edges(node.id)
        with self._graph.recording(node.id) as recorder:
            self._run_effect(node)
        self._snapshot_versions(node, recorder)
        return True

    def _run_effect(self, node: Node) -> None:
        try:
            node.value = self._invoke(node)
        except WiringError:
            raise
        except Exception as exc:
            logger.exception("Observer %r failed", node.id)
            error = ComputationError(node.id, exc)
            node.value = Invalid(str(error), source=node.id, error=error)
        node.dirty = False
        node.evaluations += 1
