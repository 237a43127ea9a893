"""Store — a named group of Sources with observer lifecycle.

A Store wraps a schema of Source nodes (typically one dashboard form) and
manages the observers registered against it. reconcile() supports schema
evolution: add new fields and re-register observers without losing the
values already entered.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

from dashflow._errors import NodeLookupError
from dashflow.session import Session


class Store:
    """Named Sources in one session, written together through update()."""

    def __init__(
        self,
        session: Session,
        schema: dict[str, Any],
        initial: dict[str, Any] | None = None,
    ) -> None:
        self._session = session
        self._keys: list[str] = []
        self._observer_ids: list[str] = []
        for key, default in schema.items():
            value = initial.get(key, default) if initial else default
            self._define(key, value)

    def _define(self, key: str, value: Any) -> None:
        self._session.define_source(key, value)
        self._keys.append(key)

    def _check(self, key: str) -> None:
        if key not in self._keys:
            raise NodeLookupError(key)

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self._keys)

    def get(self, key: str) -> Any:
        self._check(key)
        return self._session.read(key)

    def set(self, key: str, value: Any) -> None:
        self._check(key)
        self._session.write(key, value)

    def update(self, values: dict[str, Any]) -> None:
        """Write several fields as one batch."""
        for key in values:
            self._check(key)
        self._session.write_many(values)

    def values(self) -> dict[str, Any]:
        """Snapshot of every field's current value."""
        return {key: self._session.read(key) for key in self._keys}

    def reconcile(
        self,
        schema: dict[str, Any],
        setup_fn: Callable[[Store], Iterable[str] | None],
    ) -> None:
        """Schema evolution: add new fields, re-register observers.

        Existing values are untouched. New fields get defaults. Observers
        registered by the previous setup are removed; setup_fn(store)
        returns the ids of the ones it registers now.
        """
        for key, default in schema.items():
            if key not in self._keys:
                self._define(key, default)
        self._remove_observers()
        self._observer_ids = list(setup_fn(self) or [])

    def _remove_observers(self) -> None:
        for node_id in self._observer_ids:
            if node_id in self._session:
                self._session.remove(node_id)
        self._observer_ids.clear()

    def dispose(self) -> None:
        self._remove_observers()
