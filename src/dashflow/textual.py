"""Textual integration for dashflow. Opt-in — requires textual.

Observers here split into a tracked ``data_fn``, which runs inside the flush
and records dependencies, and an ``effect_fn`` that touches widgets. Only the
effect is guarded: skipped while the app is paused or not running, marshaled
through ``call_from_thread`` from background threads, and tolerant of
``NoMatches`` while the widget tree is being rebuilt.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from textual.css.query import NoMatches

from dashflow.node import ObserverMode
from dashflow.session import Session

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app: Any) -> Iterator[None]:
    """Suspend guarded effects during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app: Any) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def observer(
    app: Any,
    session: Session,
    node_id: str,
    data_fn: Callable[[], Any],
    effect_fn: Callable[[Any], None],
    *,
    mode: ObserverMode | str = ObserverMode.REACTIVE,
    trigger_id: str | None = None,
) -> str:
    """define_observer() that safely bridges to Textual widgets.

    ``data_fn`` always runs so dependencies stay tracked; ``effect_fn``
    receives its result, Invalid included. Returns the observer id.
    """
    _main = threading.get_ident()

    def _safe(value: Any) -> None:
        try:
            effect_fn(value)
        except NoMatches:
            pass

    def _guarded() -> Any:
        value = data_fn()
        if not is_safe(app):
            return value
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, value)
        else:
            _safe(value)
        return value

    return session.define_observer(node_id, _guarded, mode=mode, trigger_id=trigger_id)
