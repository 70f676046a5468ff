"""Durable response store backed by :mod:`diskcache`.

:class:`DurableStore` is a thin asynchronous adapter over a
:class:`diskcache.Cache` directory, which is itself a transactional SQLite
database. Each record is a plain ``dict``::

    {"hash": <fingerprint>, "loading": ..., "error": ..., "data": ...,
     "request": ..., "timestamp": <write time in seconds>}

Records are stored in JSON-compatible form so that the on-disk shape does not
depend on the Python classes that produced it.

Rows are kept in write order: an upsert deletes and re-inserts its key, so
the oldest write is always the first row and eviction never scans bodies.

Blocking diskcache calls run in a worker thread via :func:`asyncio.to_thread`;
diskcache opens one SQLite connection per thread, so concurrent calls are
safe. Every failure surfaces as :class:`~wiretap.exceptions.StoreError`;
deciding whether that is fatal is left to the caller (the cache manager logs
and carries on in memory).
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import diskcache
from pydantic import ValidationError

from wiretap.exceptions import StoreError, StoreUnavailable
from wiretap.models import CacheEntry, ResponseState

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STORE_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


class DurableStore:
    """Asynchronous key-value store for :class:`~wiretap.models.CacheEntry` records.

    The underlying :class:`diskcache.Cache` is opened lazily on first use and
    kept for the lifetime of the object. Share one instance per directory
    through :func:`wiretap.runtime.get_store`.

    Args:
        directory: Directory holding the SQLite database. Created on open.
        clock: Source of write timestamps (seconds). Injectable for tests.

    Example::

        store = DurableStore("/tmp/wiretap-responses")
        await store.put(key, ResponseState(loading=True))
        entry = await store.get(key)
    """

    def __init__(
        self,
        directory: str | Path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._directory = Path(directory)
        self._clock = clock
        self._cache: Optional[diskcache.Cache] = None
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def is_open(self) -> bool:
        return self._cache is not None

    def open(self) -> diskcache.Cache:
        """Open the store if needed and return the shared handle.

        Idempotent and safe to call from several threads at once.

        Raises:
            StoreUnavailable: If the directory or database cannot be opened.
        """
        if self._cache is not None:
            return self._cache
        with self._lock:
            if self._cache is None:
                try:
                    self._cache = diskcache.Cache(str(self._directory))
                except _STORE_ERRORS as exc:
                    raise StoreUnavailable(
                        f"Cannot open response store at {self._directory}: {exc}"
                    ) from exc
                logger.debug("Opened response store at %s", self._directory)
        return self._cache

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`. Reopens on next use."""
        with self._lock:
            if self._cache is not None:
                self._cache.close()
                self._cache = None

    # ------------------------------------------------------------------ #
    # Async API
    # ------------------------------------------------------------------ #

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the record stored under *key*, or ``None`` when absent."""
        record = await self._run("get", lambda cache: cache.get(key))
        if record is None:
            return None
        try:
            return CacheEntry.model_validate(record)
        except ValidationError as exc:
            raise StoreError(f"Corrupt record for {key}: {exc}") from exc

    async def put(self, key: str, state: ResponseState) -> CacheEntry:
        """Upsert *state* under *key*, stamping the current write time."""
        entry = CacheEntry(hash=key, timestamp=self._clock(), **_fields(state))
        record = entry.model_dump(mode="json")
        await self._run("put", lambda cache: _rewrite(cache, key, record))
        return entry

    async def delete(self, key: str) -> bool:
        """Remove *key*. Returns ``True`` if a record was deleted."""
        return await self._run("delete", lambda cache: cache.delete(key))

    async def clear(self) -> int:
        """Remove every record. Returns the number removed."""
        return await self._run("clear", lambda cache: cache.clear())

    async def count(self) -> int:
        """Return the number of stored records."""
        return await self._run("count", len)

    async def evict_oldest(self, n: int) -> int:
        """Delete the *n* records with the smallest write timestamp.

        Runs inside a single diskcache transaction. Records are kept in write
        order, so only the evicted records are read. Asking for more records
        than exist deletes everything; ``n <= 0`` is a no-op.

        Returns:
            The number of records actually deleted.
        """
        if n <= 0:
            return 0
        return await self._run("evict", lambda cache: _evict_oldest(cache, n))

    def stats(self) -> dict[str, Any]:
        """Return store statistics without blocking on a closed store."""
        if self._cache is None:
            return {"open": False, "directory": str(self._directory)}
        return {
            "open": True,
            "directory": str(self._directory),
            "size": len(self._cache),
            "volume_bytes": self._cache.volume(),
        }

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _run(self, op: str, fn: Callable[[diskcache.Cache], T]) -> T:
        """Run *fn* against the open cache in a worker thread."""

        def call() -> T:
            return fn(self.open())

        try:
            return await asyncio.to_thread(call)
        except StoreError:
            raise
        except _STORE_ERRORS as exc:
            raise StoreError(f"Response store {op} failed: {exc}") from exc


def _fields(state: ResponseState) -> dict[str, Any]:
    """The :class:`ResponseState` fields of *state*, without cache bookkeeping."""
    return state.model_dump(include=set(ResponseState.model_fields))


def _rewrite(cache: diskcache.Cache, key: str, record: dict[str, Any]) -> None:
    """Store *record* as the newest row, even when *key* already exists."""
    with cache.transact():
        cache.delete(key)
        cache.set(key, record)


def _evict_oldest(cache: diskcache.Cache, n: int) -> int:
    """Delete the *n* oldest records of *cache* in one transaction."""
    removed = 0
    with cache.transact():
        while removed < n:
            try:
                key, _ = cache.peekitem(last=False)
            except KeyError:
                break
            cache.delete(key)
            removed += 1
    if removed:
        logger.debug("Evicted %d stored responses", removed)
    return removed
