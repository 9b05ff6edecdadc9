"""Store — a versioned state snapshot mutated through drafts and named actions.

Mutators edit a draft (get_draft() clones the committed state on first use)
and hand it back with apply_change(action_name, draft). The store's manager
decides when the draft is flushed: the flush commits it as the new state and
notifies listeners with (new_state, old_state), in registration order.

    class TodoStore(Store):
        schema = {"todos": Array(), "filter": String(initial=lambda: "all")}

        @action
        def add(self, todo_id, title):
            self.upsert_item(self.get_draft()["todos"], todo_id, {"title": title})

The committed state is shared with every listener and must be treated as
read-only.
"""

from __future__ import annotations

import copy
import dataclasses
import itertools
import json
import logging
import uuid
from collections.abc import Mapping, MutableMapping
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterable, TypeVar

from fluxstore import collection as keyed
from fluxstore.sanitize import sanitize, sanitize_and_validate, validate
from fluxstore.config import DEFAULT_CONFIG, StoreConfig
from fluxstore.fields import Schema

if TYPE_CHECKING:
    from fluxstore.manager import StoreManager

logger = logging.getLogger("fluxstore.store")

T = TypeVar("T")

ACTION_SEED = "__STORE_STATE_SEED__"

Listener = Callable[[Any, Any], Any]


def clone_state(value: T) -> T:
    """Deep copy ``value`` for use as a draft.

    Objects providing ``clone()`` copy themselves. Everything else goes
    through copy.deepcopy, which copies dates and datetimes by value.
    """
    clone = getattr(value, "clone", None)
    if callable(clone) and not isinstance(value, type):
        return clone()
    return copy.deepcopy(value)


@dataclasses.dataclass(frozen=True)
class StateHistory(Generic[T]):
    """One flush recorded in debug mode: the actions and the state they replaced."""

    action_name: str
    state: T


@dataclasses.dataclass(frozen=True)
class SeedHandler:
    """Seeding hook: calls ``store.<method>(transform(seeded_state))``."""

    method: str
    transform: Callable[[Any], Any]


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if hasattr(value, "__dict__"):
        return vars(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _fields(state: Any) -> list[str]:
    if isinstance(state, Mapping):
        return list(state.keys())
    return list(vars(state).keys())


def _read(state: Any, key: str) -> Any:
    if isinstance(state, Mapping):
        return state.get(key)
    return getattr(state, key, None)


def _write(state: Any, key: str, value: Any) -> None:
    if isinstance(state, MutableMapping):
        state[key] = value
    else:
        setattr(state, key, value)


class Store(Generic[T]):
    """Holds one state value and publishes every change to its listeners.

    Subclasses usually set ``schema`` (the initial state is then the schema's
    defaults) or override initial_state(), and may set ``config`` to change
    the flush policy for every instance.
    """

    ACTION_SEED = ACTION_SEED

    config: StoreConfig = DEFAULT_CONFIG
    schema: Schema | None = None

    def __init__(
        self,
        manager: StoreManager,
        state: T | None = None,
        *,
        config: StoreConfig | None = None,
        debug: bool = False,
        seed_handlers: Iterable[SeedHandler] = (),
    ) -> None:
        self.identity = uuid.uuid4().hex
        self.manager = manager
        if config is not None:
            self.config = config
        self.debug = debug

        self._state: T = state if state is not None else self.initial_state()
        self._draft: T | None = None
        self._dirty = False
        self._pending_actions: list[str] = []
        self._listeners: dict[int, Listener] = {}
        self._handles = itertools.count(1)
        self._history: list[StateHistory[T]] = []
        self._seed_handlers: list[SeedHandler] = list(seed_handlers)

        manager.register(self)
        manager.bus.register(self.seed_action, self._on_seed)

    def initial_state(self) -> T:
        if self.schema is not None:
            return sanitize({}, self.schema)
        return {}  # type: ignore[return-value]

    @property
    def seed_action(self) -> str:
        return f"{ACTION_SEED}_{self.identity}"

    @property
    def history(self) -> tuple[StateHistory[T], ...]:
        return tuple(self._history)

    @property
    def has_draft(self) -> bool:
        return self._draft is not None

    def is_dirty(self) -> bool:
        return self._dirty

    # ─── State ─────────────────────────────────────────────────────────────

    def get_state(self) -> T:
        """The last committed state. Read-only."""
        return self._state

    def get_draft(self) -> T:
        """The pending draft, cloned from the committed state on first use."""
        if self._draft is None:
            self._draft = clone_state(self._state)
        return self._draft

    def apply_change(self, action_name: str, next_state: T) -> None:
        """Record ``action_name`` and make ``next_state`` the pending draft."""
        if self.debug:
            logger.debug("%s dispatched: %r", action_name, next_state)

        self._pending_actions.append(action_name)
        self._draft = next_state
        if not self._dirty:
            self._dirty = True
            self.manager.queue_flush(self)

    def flush(self) -> None:
        """Commit the pending draft and notify listeners. No-op when clean."""
        with self.manager.flush_scope(self):
            if not self._dirty:
                return

            old_state = copy.copy(self._state)
            self._state = self._draft  # type: ignore[assignment]
            self._draft = None
            self._dirty = False

            actions, self._pending_actions = self._pending_actions, []
            if self.debug:
                self._history.append(StateHistory(",".join(actions), old_state))

            self._notify(old_state)

    def _notify(self, old_state: T) -> None:
        state = self._state
        if self.debug:
            logger.debug(
                "Store state changed, notifying %d listener(s): %r -> %r",
                len(self._listeners), old_state, state,
            )
        for listener in list(self._listeners.values()):
            listener(state, old_state)

    # ─── Listeners ─────────────────────────────────────────────────────────

    def listen(self, callback: Listener) -> int:
        """Register ``callback(new_state, old_state)``. Returns a removal handle."""
        handle = next(self._handles)
        self._listeners[handle] = callback
        return handle

    def ignore(self, callback: Listener | int) -> bool:
        """Remove a listener by handle or by the callback itself."""
        if isinstance(callback, int) and not isinstance(callback, bool):
            return self._listeners.pop(callback, None) is not None

        for handle, listener in self._listeners.items():
            if listener == callback:
                del self._listeners[handle]
                return True
        return False

    # ─── Snapshots & seeding ───────────────────────────────────────────────

    def dump(self) -> dict[str, T]:
        return {"state": self._state}

    def dumps(self) -> str:
        """dump() as JSON text; dates become ISO-8601 strings."""
        return json.dumps(self.dump(), default=_json_default)

    def on_seed(self, method: str, transform: Callable[[Any], Any]) -> None:
        """Call ``self.<method>(transform(state))`` whenever the store is seeded."""
        self._seed_handlers.append(SeedHandler(method, transform))

    def seed(self, payload: Any) -> None:
        """Fill unset draft fields from a dump()-shaped payload.

        Draft fields holding None, or still holding their schema default, take
        the payload's value; list fields get the payload's items appended.
        Fields the payload lacks are left alone.
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except ValueError:
                logger.warning("Invalid JSON supplied to store seed: %.80r", payload)
                return

        if not isinstance(payload, Mapping) or not isinstance(payload.get("state"), Mapping):
            logger.warning("Invalid object supplied to store seed: %r", payload)
            return

        incoming = payload["state"]
        draft = self.get_draft()
        if not isinstance(draft, Mapping) and not hasattr(draft, "__dict__"):
            logger.warning("Cannot seed a store whose state is %s", type(draft).__name__)
            return

        for key in _fields(draft):
            if key not in incoming:
                continue
            value = _read(draft, key)
            new_value = copy.deepcopy(incoming[key])

            if isinstance(value, list) and isinstance(new_value, list):
                _write(draft, key, value + new_value)
            elif value is None or self._is_schema_default(key, value):
                _write(draft, key, new_value)

        self.manager.bus.dispatch(self.seed_action, [draft])

    def _is_schema_default(self, key: str, value: Any) -> bool:
        if self.schema is None or key not in self.schema:
            return False
        return value == self.schema[key].make_initial()

    def _on_seed(self, raw_state: Any) -> T:
        for handler in self._seed_handlers:
            getattr(self, handler.method)(handler.transform(raw_state))

        draft = self.get_draft()
        self.apply_change(self.seed_action, draft)
        return draft

    # ─── Keyed collections ─────────────────────────────────────────────────

    def upsert_item(
        self,
        collection: list,
        key: Any,
        item: Any,
        overwrite: bool = False,
        *,
        key_fn: keyed.KeyFn | None = None,
    ) -> bool:
        return keyed.upsert_item(collection, key, item, overwrite, key_fn=key_fn)

    def get_item(self, collection: list, key: Any, *, key_fn: keyed.KeyFn | None = None) -> Any:
        return keyed.get_item(collection, key, key_fn=key_fn)

    def remove_item(
        self, collection: list, key: Any, *, key_fn: keyed.KeyFn | None = None
    ) -> list | bool:
        return keyed.remove_item(collection, key, key_fn=key_fn)

    def remove_items(
        self, collection: list, keys: Iterable[Any], *, key_fn: keyed.KeyFn | None = None
    ) -> None:
        keyed.remove_items(collection, keys, key_fn=key_fn)

    def merge(self, target: Any, source: Any) -> Any:
        return keyed.deep_merge(target, source)

    sort_by = staticmethod(keyed.sort_by)
    money = staticmethod(keyed.money)

    # ─── Schema ────────────────────────────────────────────────────────────

    def sanitize(self, value: Any, schema: Schema, wire: bool = False) -> dict[str, Any]:
        return sanitize(value, schema, wire)

    def validate(self, value: Any, schema: Schema) -> bool | list[str]:
        return validate(value, schema)

    def sanitize_and_validate(self, value: Any, schema: Schema) -> dict[str, Any] | list[str]:
        return sanitize_and_validate(value, schema)

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else "clean"
        return f"{type(self).__name__}({self.identity[:8]}, {state}, {len(self._listeners)} listener(s))"
