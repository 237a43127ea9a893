"""Engine configuration.

EngineConfig is frozen after creation and shared by every component of a
Session.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields

from dashflow._errors import ConfigError


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Configuration for a dashflow Session.

    Attributes:
        equality_cutoff: Skip recomputing dependents when a recomputed node
            produced a value equal to its previous one. Off by default:
            propagation is eager and every dirty dependent re-runs.
        none_is_missing: Treat ``None`` written to a Source like ``MISSING``
            (blank form fields usually arrive as ``None``).
        max_flush_passes: Upper bound on consecutive flush passes caused by
            observer effects queueing further writes or triggers.

    """

    equality_cutoff: bool = False
    none_is_missing: bool = True
    max_flush_passes: int = 100

    def __post_init__(self) -> None:
        if self.max_flush_passes < 1:
            raise ConfigError(f"max_flush_passes must be >= 1, got {self.max_flush_passes}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> EngineConfig:
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        kwargs: dict[str, object] = {}
        for key, value in data.items():
            expected = int if key == "max_flush_passes" else bool
            if type(value) is not expected:
                raise ConfigError(
                    f"{key} must be {expected.__name__}, got {type(value).__name__}"
                )
            kwargs[key] = value
        return cls(**kwargs)
