"""Sending requests through the inspector server.

Classes:
    :class:`InspectorExecutor` -- posts a request to the inspector's
    ``/api/httpreq`` endpoint with :class:`httpx.AsyncClient`.
    :class:`RequestSender` -- the send workflow that records ``loading``,
    then ``data`` or ``error``, in the response cache.

:func:`generate_curl` renders a request as a ``curl`` command line.

Example::

    from wiretap.client import InspectorExecutor, RequestSender

    async with InspectorExecutor(api_url) as executor:
        key = await RequestSender(manager, executor).send(request)
"""

from wiretap.client.curl import curl_for_request, generate_curl
from wiretap.client.executor import InspectorExecutor, RequestExecutor
from wiretap.client.sender import RequestSender

__all__ = [
    "InspectorExecutor",
    "RequestExecutor",
    "RequestSender",
    "curl_for_request",
    "generate_curl",
]
