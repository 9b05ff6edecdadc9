"""Action dispatch bus — deliver named actions to whoever registered for them.

Handlers register under an action name and receive the dispatched arguments
positionally. Observers registered with listen_all() see every dispatch,
which is how external hooks watch store seeding.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

logger = logging.getLogger("fluxstore.dispatch")

Disposer = Callable[[], None]


class ActionBus:
    """Maps action names to ordered handler lists."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = {}
        self._observers: list[Callable[[str, tuple], None]] = []

    def register(self, name: str, handler: Callable[..., Any]) -> Disposer:
        """Register a handler for ``name``. Returns a function that removes it."""
        self._handlers.setdefault(name, []).append(handler)

        def _unregister() -> None:
            handlers = self._handlers.get(name)
            if handlers is None:
                return
            try:
                handlers.remove(handler)
            except ValueError:
                pass  # already removed
            if not handlers:
                del self._handlers[name]

        return _unregister

    def listen_all(self, observer: Callable[[str, tuple], None]) -> Disposer:
        """Observe every dispatch as ``observer(name, args)``."""
        self._observers.append(observer)

        def _unlisten() -> None:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass

        return _unlisten

    def has_handlers(self, name: str) -> bool:
        return bool(self._handlers.get(name))

    def dispatch(self, name: str, args: Sequence[Any] = ()) -> list[Any]:
        """Call every handler registered for ``name`` with ``*args``.

        Returns the handlers' results in registration order.
        """
        args = tuple(args)
        for observer in list(self._observers):
            observer(name, args)

        handlers = self._handlers.get(name)
        if not handlers:
            logger.debug("No handlers registered for action %s", name)
            return []

        return [handler(*args) for handler in list(handlers)]
