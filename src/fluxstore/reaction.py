"""Selections — react to one slice of a store's state.

A plain listener runs on every flush. select(store, selector, effect) runs
selector on each new state and calls effect only when the selected value
differs from the previous one.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from fluxstore.store import Store

S = TypeVar("S")


class Selection(Generic[S]):
    """Listener that tracks ``selector(state)`` and fires on change."""

    __slots__ = ("_store", "_selector", "_effect", "_handle", "_value", "_disposed")

    def __init__(self, store: Store, selector: Callable[[Any], S], effect: Callable[[S], None]) -> None:
        self._store = store
        self._selector = selector
        self._effect = effect
        self._value = selector(store.get_state())
        self._disposed = False
        self._handle = store.listen(self._on_change)

    @property
    def value(self) -> S:
        return self._value

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _on_change(self, new_state: Any, old_state: Any) -> None:
        if self._disposed:
            return
        value = self._selector(new_state)
        if value != self._value:
            self._value = value
            self._effect(value)

    def dispose(self) -> None:
        """Stop tracking. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        self._store.ignore(self._handle)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._selector, "__name__", type(self._selector).__name__)
        return f"Selection({name}, {state})"


def select(
    store: Store,
    selector: Callable[[Any], S],
    effect: Callable[[S], None],
    *,
    fire_immediately: bool = False,
) -> Selection[S]:
    """Call effect(value) whenever selector(state) changes after a flush.

    Returns the Selection (call .dispose() to stop).

    Usage:
        remaining = select(
            todos,
            lambda state: sum(1 for t in state["todos"] if not t["done"]),
            lambda count: print(f"{count} left"),
        )
    """
    selection = Selection(store, selector, effect)
    if fire_immediately:
        effect(selection.value)
    return selection
