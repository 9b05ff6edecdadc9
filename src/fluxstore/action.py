"""Actions and transactions — batched store mutations.

An @action method edits the store's draft; when it returns, the draft is
applied under the action's name. Synchronous stores changed inside an action
or a `with transaction(manager)` block flush once each, in the order they
were first changed, when the outermost scope exits.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterator, TypeVar, overload

if TYPE_CHECKING:
    from fluxstore.manager import StoreManager

F = TypeVar("F", bound=Callable[..., Any])


@overload
def action(fn: F) -> F: ...


@overload
def action(*, name: str | None = None) -> Callable[[F], F]: ...


def action(fn=None, *, name=None):
    """Decorator for Store methods that mutate the draft.

    Usage:
        class CounterStore(Store):
            @action
            def increment(self):
                draft = self.get_draft()
                draft["count"] += 1

            @action(name="counter/reset")
            def reset(self):
                self.get_draft()["count"] = 0

    The action name defaults to the method name. Nested actions share the
    outer batch.
    """

    def decorate(method: F) -> F:
        action_name = name or method.__name__

        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            with self.manager.batch():
                result = method(self, *args, **kwargs)
                if self.has_draft:
                    self.apply_change(action_name, self.get_draft())
            return result

        return wrapper  # type: ignore[return-value]

    if fn is not None:
        return decorate(fn)
    return decorate


@contextmanager
def transaction(manager: StoreManager) -> Iterator[None]:
    """Context manager for batching changes across stores.

    Usage:
        with transaction(manager):
            todos.add(1, "write docs")
            stats.bump("todos")
            # both stores flush here, once each
    """
    manager.begin_batch()
    try:
        yield
    finally:
        manager.end_batch()
