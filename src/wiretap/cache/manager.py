"""Two-tier response cache: in-memory map in front of a durable store.

:class:`ResponseCacheManager` owns the map of fingerprint to
:class:`~wiretap.models.ResponseState` and is the only writer to the
:class:`~wiretap.cache.store.DurableStore`.

* **Reads** (:meth:`~ResponseCacheManager.get_state`) are served from memory
  when possible, otherwise from the durable store, otherwise as an empty
  default that is *not* persisted. Concurrent reads of the same missing key
  share a single durable load.
* **Writes** (:meth:`~ResponseCacheManager.update_state`) merge onto the
  current state and land in memory synchronously, so a read in the same
  tick sees them. Persistence and eviction run as background tasks; await
  :meth:`~ResponseCacheManager.flush` to wait for them.
* **Eviction** trims only the durable tier down to ``capacity``, oldest
  write first. The optional ``memory_capacity`` bound trims the memory tier
  independently, least-recently-written first.

Durable failures are logged and never raised: memory is the source of truth
for the running process.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Any, Callable, Coroutine, Optional

from wiretap.cache.store import DurableStore
from wiretap.exceptions import StoreError
from wiretap.models import DEFAULT_MAX_ENTRIES, CacheConfig, ResponseState

logger = logging.getLogger(__name__)

StateListener = Callable[[ResponseState], None]
"""Called with the new state whenever a watched key changes."""

_Loaded = tuple[tuple[int, int], Optional[ResponseState]]


class ResponseCacheManager:
    """Coordinates the memory and durable tiers of the response cache.

    Must be used from within a running asyncio event loop when a store is
    attached, because writes schedule background persistence tasks.

    Args:
        store: Durable tier. ``None`` keeps the cache memory-only.
        capacity: Maximum number of durable records before eviction.
        memory_capacity: Maximum number of in-memory states, or ``None``
            for no bound.

    Example::

        manager = ResponseCacheManager(get_store(path))
        manager.update_state(key, {"loading": True, "request": req})
        state = await manager.get_state(key)
        await manager.flush()
    """

    def __init__(
        self,
        store: Optional[DurableStore] = None,
        capacity: int = DEFAULT_MAX_ENTRIES,
        memory_capacity: Optional[int] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._store = store
        self._capacity = capacity
        self._memory_capacity = memory_capacity or None
        self._memory: OrderedDict[str, ResponseState] = OrderedDict()
        self._loads: dict[str, asyncio.Task[_Loaded]] = {}
        self._writes: dict[str, asyncio.Task[None]] = {}
        self._pending: set[asyncio.Task[Any]] = set()
        self._listeners: dict[str, list[StateListener]] = {}
        self._evict_lock = asyncio.Lock()
        # Bumped on delete/clear so that loads started earlier do not
        # resurrect a removed entry.
        self._epoch = 0
        self._key_epochs: dict[str, int] = {}
        # Keys with a durable delete in flight, and the number of running clears.
        self._removing: dict[str, int] = {}
        self._clearing = 0

    @classmethod
    def from_config(
        cls, config: CacheConfig, store: Optional[DurableStore]
    ) -> ResponseCacheManager:
        """Build a manager from :class:`~wiretap.models.CacheConfig`."""
        return cls(
            store=store if config.enabled else None,
            capacity=config.max_entries,
            memory_capacity=config.memory_capacity,
        )

    @property
    def store(self) -> Optional[DurableStore]:
        return self._store

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def memory_capacity(self) -> Optional[int]:
        return self._memory_capacity

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, key: object) -> bool:
        return key in self._memory

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def peek(self, key: str) -> ResponseState:
        """Return the in-memory state for *key* without touching the store."""
        return self._memory.get(key) or ResponseState()

    async def get_state(self, key: str) -> ResponseState:
        """Return the state for *key*, loading it from the durable tier if needed.

        A key found in neither tier yields an empty :class:`ResponseState`,
        which is returned but not stored.
        """
        state = self._memory.get(key)
        if state is not None:
            return state
        if self._store is None or self._is_removing(key):
            return ResponseState()

        task = self._loads.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key))
            self._loads[key] = task
            task.add_done_callback(lambda done, key=key: _forget(self._loads, key, done))
        marker, loaded = await asyncio.shield(task)

        current = self._memory.get(key)
        if current is not None:
            # A write landed while the load was in flight; memory wins.
            return current
        if loaded is None or self._marker(key) != marker or self._is_removing(key):
            return ResponseState()
        self._remember(key, loaded)
        self._notify(key, loaded)
        return loaded

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def update_state(
        self, key: str, changes: Optional[dict[str, Any]] = None, **fields: Any
    ) -> ResponseState:
        """Merge changes onto the state for *key* and schedule persistence.

        Changes may be passed as a mapping, as keyword arguments, or both.
        The merged state is visible to :meth:`peek` and :meth:`get_state`
        immediately.

        Returns:
            The merged state.
        """
        update = {**(changes or {}), **fields}
        current = self._memory.get(key) or ResponseState()
        if current.is_terminal and update.get("loading"):
            logger.warning("Response %s re-entered loading after completing", key)
        state = current.merged(update)

        self._remember(key, state)
        self._notify(key, state)
        if self._store is not None:
            # Chain writes per key so the durable tier ends on the latest state.
            previous = self._writes.get(key)
            task = self._spawn(self._persist(key, state, previous), key)
            if task is not None:
                self._writes[key] = task
                task.add_done_callback(lambda done, key=key: _forget(self._writes, key, done))
        return state

    async def delete_state(self, key: str) -> None:
        """Remove *key* from memory and from the durable store."""
        self._memory.pop(key, None)
        self._key_epochs[key] = self._key_epochs.get(key, 0) + 1
        self._notify(key, ResponseState())
        if self._store is None:
            return
        self._removing[key] = self._removing.get(key, 0) + 1
        try:
            await self.flush()
            await self._store.delete(key)
        except StoreError as exc:
            logger.warning("Failed to delete stored response %s: %s", key, exc)
        finally:
            if self._removing[key] == 1:
                del self._removing[key]
            else:
                self._removing[key] -= 1

    async def clear_all(self) -> None:
        """Empty the memory map and the durable store."""
        self._memory.clear()
        self._epoch += 1
        self._key_epochs.clear()
        for key in list(self._listeners):
            self._notify(key, ResponseState())
        if self._store is None:
            return
        self._clearing += 1
        try:
            await self.flush()
            await self._store.clear()
        except StoreError as exc:
            logger.warning("Failed to clear stored responses: %s", exc)
        finally:
            self._clearing -= 1

    async def flush(self) -> None:
        """Wait until every scheduled persistence and eviction task finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Listeners
    # ------------------------------------------------------------------ #

    def watch(self, key: str, listener: StateListener) -> Callable[[], None]:
        """Call *listener* with the new state every time *key* changes.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.setdefault(key, []).append(listener)

        def unwatch() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        return unwatch

    def stats(self) -> dict[str, Any]:
        return {
            "memory_entries": len(self._memory),
            "memory_capacity": self._memory_capacity,
            "capacity": self._capacity,
            "pending_writes": len(self._pending),
            "durable": self._store.stats() if self._store is not None else None,
        }

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _marker(self, key: str) -> tuple[int, int]:
        return self._epoch, self._key_epochs.get(key, 0)

    def _is_removing(self, key: str) -> bool:
        return self._clearing > 0 or key in self._removing

    async def _load(self, key: str) -> _Loaded:
        assert self._store is not None
        marker = self._marker(key)
        try:
            entry = await self._store.get(key)
        except StoreError as exc:
            logger.warning("Failed to load stored response %s: %s", key, exc)
            return marker, None
        return marker, entry.to_state() if entry is not None else None

    def _remember(self, key: str, state: ResponseState) -> None:
        self._memory[key] = state
        self._memory.move_to_end(key)
        if self._memory_capacity is None:
            return
        while len(self._memory) > self._memory_capacity:
            dropped, _ = self._memory.popitem(last=False)
            logger.debug("Dropped response %s from memory", dropped)

    def _notify(self, key: str, state: ResponseState) -> None:
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener for %s failed", key)

    def _spawn(
        self, coro: Coroutine[Any, Any, None], key: str
    ) -> Optional[asyncio.Task[None]]:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; response %s kept in memory only", key)
            return None
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _persist(
        self, key: str, state: ResponseState, previous: Optional[asyncio.Task[None]]
    ) -> None:
        assert self._store is not None
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await self._store.put(key, state)
        except StoreError as exc:
            logger.warning("Failed to persist response %s: %s", key, exc)
            return
        self._spawn(self._evict_if_needed(), key)

    async def _evict_if_needed(self) -> None:
        assert self._store is not None
        async with self._evict_lock:
            try:
                count = await self._store.count()
                if count > self._capacity:
                    removed = await self._store.evict_oldest(count - self._capacity)
                    logger.info(
                        "Evicted %d stored responses (capacity %d)", removed, self._capacity
                    )
            except StoreError as exc:
                logger.warning("Response store eviction failed: %s", exc)


def _forget(tasks: dict[str, asyncio.Task[Any]], key: str, task: asyncio.Task[Any]) -> None:
    if tasks.get(key) is task:
        del tasks[key]
