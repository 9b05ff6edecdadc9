"""Store manager — store registry and flush scheduler.

Every Store registers with the manager it was constructed with. When a store
goes dirty it asks the manager for a flush; the manager decides when that
flush runs, according to the store's StoreConfig:

- synchronous (default): right away, or when the outermost batch scope
  exits if one is open;
- async_flush: once, when the scheduler calls back, no sooner than
  flush_interval_ms after the store's previous flush;
- frame_synced: on the next frame tick, together with every other
  frame-synced store queued in the meantime.

A store is queued at most once per cycle however many changes it receives.
Flushing a store that has a mesh_key also flushes every other dirty store
with the same key, in registration order.

Create one manager at application start and pass it to every store:

    manager = StoreManager()
    todos = TodoStore(manager)
"""

from __future__ import annotations

import asyncio
import functools
import itertools
import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator

from fluxstore.dispatch import ActionBus

if TYPE_CHECKING:
    from fluxstore.store import Store

logger = logging.getLogger("fluxstore.manager")

Scheduler = Callable[[float, Callable[[], None]], object]

FRAME_INTERVAL = 1 / 60


class StoreManager:
    """Registry of stores plus the machinery that flushes them.

    ``scheduler(delay_seconds, callback)`` runs deferred flushes. By default
    the running asyncio loop's ``call_later`` is used; without a running loop
    deferred flushes wait for flush_pending().
    """

    def __init__(
        self,
        *,
        bus: ActionBus | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
        frame_interval: float = FRAME_INTERVAL,
    ) -> None:
        self.bus = bus if bus is not None else ActionBus()
        self._scheduler = scheduler
        self._clock = clock
        self._frame_interval = frame_interval
        self._stores: dict[str, Store] = {}

        # Queues are dicts used as insertion-ordered sets; _deferred maps each
        # store to the token of its live deferred request.
        self._pending: dict[Store, None] = {}
        self._deferred: dict[Store, int] = {}
        self._deferred_tokens = itertools.count(1)
        self._frame_queue: dict[Store, None] = {}
        self._frame_requested = False
        self._held: list[Callable[[], None]] = []
        self._last_flush: dict[str, float] = {}

        self._batch_depth = 0
        self._flush_depth = 0

    # ─── Registry ──────────────────────────────────────────────────────────

    def register(self, store: Store) -> None:
        self._stores[store.identity] = store

    def get_store(self, identity: str) -> Store | None:
        return self._stores.get(identity)

    @property
    def stores(self) -> list[Store]:
        """Registered stores, in registration order."""
        return list(self._stores.values())

    # ─── Batching ──────────────────────────────────────────────────────────

    def begin_batch(self) -> None:
        """Enter a batching scope. Nested batches are supported."""
        self._batch_depth += 1

    def end_batch(self) -> None:
        """Exit a batching scope. The outermost exit flushes queued synchronous stores."""
        self._batch_depth -= 1
        if self._batch_depth == 0 and self._flush_depth == 0:
            self._drain()

    @contextmanager
    def batch(self) -> Iterator[None]:
        self.begin_batch()
        try:
            yield
        finally:
            self.end_batch()

    # ─── Scheduling ────────────────────────────────────────────────────────

    def queue_flush(self, store: Store) -> None:
        """Request a flush for a store that just went dirty."""
        if store.identity not in self._stores:
            self.register(store)

        config = store.config
        if config.frame_synced:
            self._queue_frame(store)
        elif config.async_flush:
            self._queue_deferred(store)
        else:
            self._pending[store] = None
            if self._batch_depth == 0 and self._flush_depth == 0:
                self._drain()

    def pending_count(self) -> int:
        """Number of stores waiting for a flush. Useful for testing."""
        return len(self._queued())

    def flush_pending(self) -> None:
        """Flush every queued store now, whatever its policy."""
        held, self._held = self._held, []
        for callback in held:
            callback()
        for store in self._queued():
            if self._is_queued(store):
                self._flush_now(store)

    @contextmanager
    def flush_scope(self, store: Store) -> Iterator[None]:
        """Wrap a store's own flush.

        Changes applied by listeners while the scope is open are queued and
        flushed once it closes, each as a fresh cycle.
        """
        self._discard(store)
        self._flush_depth += 1
        try:
            yield
        finally:
            self._flush_depth -= 1
        self._last_flush[store.identity] = self._clock()
        if self._flush_depth == 0 and self._batch_depth == 0:
            self._drain()

    def _queue_deferred(self, store: Store) -> None:
        if store in self._deferred:
            return
        token = self._deferred[store] = next(self._deferred_tokens)

        interval = store.config.flush_interval_ms / 1000
        last = self._last_flush.get(store.identity)
        delay = 0.0 if last is None else max(0.0, interval - (self._clock() - last))
        logger.debug("Deferred flush of store %s in %.3fs", store.identity, delay)
        self._schedule(delay, functools.partial(self._run_deferred, store, token))

    def _queue_frame(self, store: Store) -> None:
        self._frame_queue[store] = None
        if self._frame_requested:
            return
        self._frame_requested = True
        delay = self._frame_interval - (self._clock() % self._frame_interval)
        logger.debug("Frame flush requested in %.3fs", delay)
        self._schedule(delay, self._run_frame)

    def _schedule(self, delay: float, callback: Callable[[], None]) -> None:
        if self._scheduler is not None:
            self._scheduler(delay, callback)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, holding flush until flush_pending()")
            self._held.append(callback)
            return
        loop.call_later(delay, callback)

    def _run_deferred(self, store: Store, token: int) -> None:
        # A request superseded by a direct flush and a newer request is stale.
        if self._deferred.get(store) == token:
            self._flush_now(store)

    def _run_frame(self) -> None:
        self._frame_requested = False
        try:
            for store in list(self._frame_queue):
                if store in self._frame_queue:
                    self._flush_now(store)
        finally:
            if self._frame_queue and not self._frame_requested:
                self._frame_requested = True
                self._schedule(self._frame_interval, self._run_frame)

    # ─── Flushing ──────────────────────────────────────────────────────────

    def _queued(self) -> list[Store]:
        return list(dict.fromkeys([*self._pending, *self._deferred, *self._frame_queue]))

    def _is_queued(self, store: Store) -> bool:
        return store in self._pending or store in self._deferred or store in self._frame_queue

    def _discard(self, store: Store) -> None:
        self._pending.pop(store, None)
        self._deferred.pop(store, None)
        self._frame_queue.pop(store, None)

    def _mesh(self, store: Store) -> list[Store]:
        mesh_key = store.config.mesh_key
        if mesh_key is None:
            return [store]
        others = [
            s for s in self._stores.values()
            if s is not store and s.config.mesh_key == mesh_key and s.is_dirty()
        ]
        return [store, *others]

    def _flush_now(self, store: Store, drain: bool = True) -> None:
        self._flush_depth += 1
        try:
            for member in self._mesh(store):
                self._discard(member)
                member.flush()
        finally:
            self._flush_depth -= 1
        if drain and self._flush_depth == 0 and self._batch_depth == 0:
            self._drain()

    def _drain(self) -> None:
        """Flush queued synchronous stores, including ones queued while flushing."""
        while self._pending:
            store = next(iter(self._pending))
            self._flush_now(store, drain=False)
