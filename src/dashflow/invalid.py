"""Marker values for missing and erroneous data.

``MISSING`` is what a blank form field writes. ``Invalid`` is what flows
through the graph instead of an exception: a Source holding ``MISSING``
reads as Invalid, and so does every Derived node downstream of it.
"""

from __future__ import annotations

from dashflow._errors import ComputationError


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return "MISSING"


MISSING = _Missing()


class Invalid:
    """Explicit marker for missing or erroneous upstream data.

    Attributes:
        reason: Human-readable description of what went wrong.
        source: Id of the node where the invalid value originated.
        error: The ComputationError when a collaborator raised, else None.

    """

    __slots__ = ("reason", "source", "error")

    def __init__(
        self,
        reason: str = "missing input",
        *,
        source: str | None = None,
        error: ComputationError | None = None,
    ) -> None:
        self.reason = reason
        self.source = source
        self.error = error

    def __bool__(self) -> bool:
        return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Invalid):
            return NotImplemented
        return self.reason == other.reason and self.source == other.source

    def __hash__(self) -> int:
        return hash((Invalid, self.reason, self.source))

    def __repr__(self) -> str:
        if self.source is None:
            return f"Invalid({self.reason!r})"
        return f"Invalid({self.reason!r}, source={self.source!r})"


def is_invalid(value: object) -> bool:
    """True when value is an Invalid marker."""
    return isinstance(value, Invalid)
