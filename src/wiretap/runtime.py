"""Process-wide shared handles.

A process holds at most one open :class:`~wiretap.cache.store.DurableStore`
per directory and one :class:`~wiretap.live.multiplexer.LiveUpdateMultiplexer`
per URL. Both are created lazily on first request and handed to consumers
explicitly; nothing else in the package reaches for them globally.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from wiretap.cache.store import DurableStore
from wiretap.live.multiplexer import ConnectFactory, LiveUpdateMultiplexer
from wiretap.models import LiveConfig

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_stores: dict[Path, DurableStore] = {}
_multiplexers: dict[str, LiveUpdateMultiplexer] = {}


def get_store(directory: str | Path) -> DurableStore:
    """Return the shared store for *directory*, creating it on first use.

    The store itself opens its database lazily, so calling this never
    touches the disk.
    """
    path = Path(directory).expanduser().resolve()
    with _lock:
        store = _stores.get(path)
        if store is None:
            store = _stores[path] = DurableStore(path)
            logger.debug("Registered response store for %s", path)
        return store


def get_multiplexer(
    url: str,
    config: Optional[LiveConfig] = None,
    connect: Optional[ConnectFactory] = None,
) -> LiveUpdateMultiplexer:
    """Return the shared multiplexer for *url*, creating it on first use.

    *config* and *connect* only apply when the multiplexer is created.
    """
    with _lock:
        mux = _multiplexers.get(url)
        if mux is None:
            mux = _multiplexers[url] = LiveUpdateMultiplexer(url, config=config, connect=connect)
        return mux


def reset() -> None:
    """Close every shared store and forget all shared handles.

    Multiplexers are not stopped here; stop them from their event loop first.
    """
    with _lock:
        for store in _stores.values():
            store.close()
        _stores.clear()
        _multiplexers.clear()
