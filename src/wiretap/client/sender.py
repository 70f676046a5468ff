"""The send workflow: fingerprint, mark loading, execute, record the outcome.

:class:`RequestSender` is the caller side of the cache contract. Every send
gets a fresh timestamp and therefore its own fingerprint, so resending an
identical request never overwrites an earlier result.

Only a fingerprint failure propagates. Any execution failure, including an
unexpected exception from a custom executor, is written into
:attr:`~wiretap.models.ResponseState.error`.
"""

from __future__ import annotations

import json
import logging
from typing import Callable, Optional

from wiretap.cache.manager import ResponseCacheManager
from wiretap.client.executor import RequestExecutor
from wiretap.exceptions import ExecuteError
from wiretap.fingerprint import fingerprint
from wiretap.models import RequestDescriptor

logger = logging.getLogger(__name__)

_SEND_FAILED = "Failed to send request"


class RequestSender:
    """Sends requests and records their state in the response cache.

    Args:
        cache: The response cache manager.
        executor: Performs the actual request, e.g.
            :class:`~wiretap.client.executor.InspectorExecutor`.
    """

    def __init__(self, cache: ResponseCacheManager, executor: RequestExecutor) -> None:
        self._cache = cache
        self._executor = executor

    async def send(
        self,
        request: RequestDescriptor,
        normalize_json: bool = False,
        restamp: bool = True,
        on_started: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Send *request* and return its fingerprint.

        Args:
            request: The request as built by the user.
            normalize_json: Re-serialise a JSON body compactly before sending;
                bodies that do not parse are sent unchanged.
            restamp: Give the request a fresh timestamp first. Disable only
                when the caller already stamped it.
            on_started: Called with the fingerprint once the loading state
                is recorded, before the request goes out.

        Raises:
            FingerprintError: If the fingerprint cannot be computed.
        """
        if restamp:
            request = request.restamped()
        key = fingerprint(request)

        self._cache.update_state(key, loading=True, error=None, request=request)
        if on_started is not None:
            on_started(key)

        body = _normalize(request.body) if normalize_json else request.body
        try:
            data = await self._executor.execute(
                request.method, request.url, request.enabled_headers(), body
            )
        except ExecuteError as exc:
            logger.info("Send %s failed: %s", key, exc)
            self._cache.update_state(key, loading=False, error=str(exc) or _SEND_FAILED)
            return key
        except Exception as exc:
            # Custom executors may raise anything; the state must still settle.
            logger.warning("Send %s failed unexpectedly: %r", key, exc, exc_info=True)
            self._cache.update_state(key, loading=False, error=str(exc) or _SEND_FAILED)
            return key

        self._cache.update_state(key, loading=False, data=data)
        return key


def _normalize(body: str) -> str:
    if not body.strip():
        return body
    try:
        return json.dumps(json.loads(body), separators=(",", ":"), ensure_ascii=False)
    except json.JSONDecodeError:
        return body
