"""Two-tier response caching for wiretap.

This package provides :class:`DurableStore`, an asynchronous adapter over a
:mod:`diskcache` directory, and :class:`ResponseCacheManager`, which keeps an
in-memory map of fingerprint to :class:`~wiretap.models.ResponseState` in
front of it and trims the durable tier to a fixed capacity.

Both are configured by the ``cache`` section of the global configuration
(:class:`~wiretap.models.CacheConfig`).
"""

from wiretap.cache.manager import ResponseCacheManager
from wiretap.cache.store import DurableStore

__all__ = ["DurableStore", "ResponseCacheManager"]
