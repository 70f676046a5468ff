"""Execute-request collaborator backed by the inspector server.

The inspector UI never talks to the target host itself; it posts the request
to the inspector server's ``/api/httpreq`` endpoint, which performs the call
and reports back::

    POST /api/httpreq  {"method", "url", "headers", "body"}
    200                {"status", "statusText", "headers", "body", "duration"}
    4xx/5xx            {"error": "..."}

:class:`InspectorExecutor` does the same with :class:`httpx.AsyncClient`.
Anything that keeps the send from producing a :class:`~wiretap.models.ResponseData`
is raised as :class:`~wiretap.exceptions.ExecuteError`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError

from wiretap.exceptions import ExecuteError
from wiretap.models import DEFAULT_API_URL, ResponseData, ServerConfig

logger = logging.getLogger(__name__)

HTTPREQ_PATH = "/api/httpreq"


class RequestExecutor(Protocol):
    """Anything that can perform a send and report its outcome."""

    async def execute(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str,
    ) -> ResponseData: ...


class InspectorExecutor:
    """Performs sends through the inspector server.

    Must be used as an async context manager so that the underlying
    :class:`httpx.AsyncClient` is opened and closed.

    Args:
        api_url: Base URL of the inspector server.
        timeout: Seconds to wait for the whole round trip.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`.

    Example::

        async with InspectorExecutor("http://localhost:20000") as executor:
            data = await executor.execute("GET", "https://x/y", {}, "")
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 1800.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: ServerConfig) -> InspectorExecutor:
        return cls(api_url=config.api_url, timeout=config.timeout)

    async def __aenter__(self) -> InspectorExecutor:
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def execute(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: str,
    ) -> ResponseData:
        """Ask the inspector server to perform the request.

        Raises:
            ExecuteError: On network failure, an error status from the
                inspector, or a response that does not parse.
        """
        assert self._client is not None, "Executor not initialised -- use as async context manager"

        payload = {"method": method, "url": url, "headers": headers, "body": body}
        try:
            response = await self._client.post(HTTPREQ_PATH, json=payload)
        except httpx.RequestError as exc:
            raise ExecuteError(f"Failed to reach inspector at {self._api_url}: {exc}") from exc

        if response.status_code >= 400:
            raise ExecuteError(_error_message(response))

        try:
            data = ResponseData.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ExecuteError(f"Malformed response from inspector: {exc}") from exc
        logger.debug("%s %s -> %d in %dms", method, url, data.status, data.duration)
        return data


def _error_message(response: httpx.Response) -> str:
    """Pull the ``error`` field out of an inspector failure response."""
    detail: Any = None
    try:
        detail = response.json()
    except ValueError:
        pass
    if isinstance(detail, dict) and detail.get("error"):
        return str(detail["error"])
    text = response.text[:200] if response.text else ""
    prefix = f"HTTP {response.status_code}"
    return f"{prefix}: {text}" if text else prefix
