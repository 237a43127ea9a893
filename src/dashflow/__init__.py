"""dashflow: reactive dataflow engine for interactive dashboards."""

from importlib.metadata import version as _version

__version__ = _version("dashflow")

from dashflow._errors import (
    ComputationError,
    ConfigError,
    CycleError,
    DashflowError,
    DuplicateNodeError,
    FlushOverflowError,
    NodeInUseError,
    NodeKindError,
    NodeLookupError,
    SessionClosedError,
    ValidationError,
    WiringError,
)
from dashflow._tracking import untracked
from dashflow.action import action, transaction
from dashflow.config import EngineConfig
from dashflow.debounce import Debouncer
from dashflow.evaluator import Evaluator
from dashflow.graph import DependencyGraph
from dashflow.invalid import MISSING, Invalid, is_invalid
from dashflow.invalidation import InvalidationTracker
from dashflow.node import Node, NodeKind, ObserverMode
from dashflow.scheduler import FlushScheduler
from dashflow.session import Session, SessionRegistry
from dashflow.store import Store
# textual bridge and risk wiring NOT auto-imported; opt-in only

__all__ = [
    "Session",
    "SessionRegistry",
    "EngineConfig",
    "Node",
    "NodeKind",
    "ObserverMode",
    "DependencyGraph",
    "InvalidationTracker",
    "Evaluator",
    "FlushScheduler",
    "Store",
    "Debouncer",
    "action",
    "transaction",
    "untracked",
    "MISSING",
    "Invalid",
    "is_invalid",
    "DashflowError",
    "WiringError",
    "CycleError",
    "NodeLookupError",
    "NodeKindError",
    "DuplicateNodeError",
    "NodeInUseError",
    "ValidationError",
    "ComputationError",
    "FlushOverflowError",
    "SessionClosedError",
    "ConfigError",
]
