"""Dashflow error hierarchy.

All dashflow-specific errors inherit from DashflowError for easy catching.
WiringError subclasses signal programming mistakes and are never turned into
Invalid values by the evaluator.
"""

from __future__ import annotations


class DashflowError(Exception):
    """Base error for all dashflow operations."""


class WiringError(DashflowError):
    """The graph was wired incorrectly. Not recoverable at runtime."""


class CycleError(WiringError):
    """Adding an edge would close a dependency cycle.

    ``cycle`` holds the node ids in depends-on order, starting and ending at
    the dependent of the rejected edge.
    """

    def __init__(self, cycle: tuple[str, ...]) -> None:
        self.cycle = cycle
        super().__init__("dependency cycle: " + " -> ".join(cycle))


class NodeLookupError(WiringError, LookupError):
    """A node id is not registered in the session."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"no node registered as {node_id!r}")


class NodeKindError(WiringError, TypeError):
    """An operation was applied to the wrong kind of node."""


class DuplicateNodeError(WiringError):
    """A node id was registered twice."""


class NodeInUseError(WiringError):
    """A node cannot be removed while other nodes depend on it."""


class ValidationError(DashflowError):
    """An input is missing or out of range. Becomes an Invalid value."""


class ComputationError(DashflowError):
    """A derived function failed on valid inputs.

    Attached to the resulting Invalid value; never raised out of a flush.
    """

    def __init__(self, node_id: str, cause: BaseException) -> None:
        self.node_id = node_id
        self.cause = cause
        super().__init__(f"{node_id}: {type(cause).__name__}: {cause}")


class FlushOverflowError(DashflowError):
    """Observer effects kept queueing work past the configured pass limit."""


class SessionClosedError(DashflowError):
    """The session was disposed."""


class ConfigError(DashflowError):
    """Invalid engine configuration."""
