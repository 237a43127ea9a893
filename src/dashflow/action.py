"""Actions and transactions — batched Source writes.

Wrapping writes in an action or ``with transaction(session)`` defers every
observer until the outermost scope exits. This prevents glitchy intermediate
states where some dependents have seen the new inputs and others haven't.
The session lock is held for the whole scope.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator, ParamSpec, TypeVar

if TYPE_CHECKING:
    from dashflow.session import Session

P = ParamSpec("P")
R = TypeVar("R")


@contextmanager
def transaction(session: Session) -> Iterator[None]:
    """Context manager for batching writes.

    Usage:
        with transaction(session):
            session.write("Age", 30)
            session.write("Glucose", 100)
            # observers fire here, after both are set
    """
    with session.lock:
        session._check_open()
        session.scheduler.begin_batch()
        try:
            yield
        finally:
            session.scheduler.end_batch()


def action(session: Session) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator: batch all writes made by the decorated function.

    Observers only fire after the function returns, not during.

    Usage:
        @action(session)
        def swap():
            a, b = session.read("a"), session.read("b")
            session.write("a", b)
            session.write("b", a)
            # observers see both changes at once, not one at a time
    """

    def decorate(fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with transaction(session):
                return fn(*args, **kwargs)

        return wrapper

    return decorate
