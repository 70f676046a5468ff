"""Render a request as a copy-pasteable ``curl`` command."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Mapping, Optional, Sequence, Union

from wiretap.models import RequestDescriptor

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")

HeaderValues = Union[str, Sequence[str]]


def is_base64(text: str) -> bool:
    """True when *text* decodes as base64 and re-encodes to exactly itself."""
    if not text or len(text) % 4 != 0 or not _BASE64_RE.match(text):
        return False
    try:
        decoded = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return False
    return base64.b64encode(decoded).decode("ascii") == text


def _quote(text: str) -> str:
    return "'" + text.replace("'", "'\\''") + "'"


def generate_curl(
    method: str,
    url: str,
    headers: Optional[Mapping[str, HeaderValues]] = None,
    body: Optional[str] = None,
) -> str:
    """Build a multi-line ``curl`` command.

    ``-X`` is emitted only for non-GET methods, multi-valued headers are
    joined with ``", "``, a base64 body is decoded first when it round-trips
    cleanly, and the URL always comes last.

    Example::

        >>> print(generate_curl("POST", "https://x/y", {"A": "1"}, "hi"))
        curl -X POST \\
          -H 'A: 1' \\
          -d 'hi' \\
          'https://x/y'
    """
    parts = ["curl"]
    if method and method.upper() != "GET":
        parts[0] += f" -X {method}"

    for key, values in (headers or {}).items():
        value = values if isinstance(values, str) else ", ".join(values)
        parts.append(f"-H {_quote(f'{key}: {value}')}")

    if body:
        if is_base64(body):
            body = base64.b64decode(body).decode("utf-8", errors="replace")
        parts.append(f"-d {_quote(body)}")

    parts.append(_quote(url))
    return " \\\n  ".join(parts)


def curl_for_request(request: RequestDescriptor) -> str:
    """``curl`` command for the enabled headers and body of *request*."""
    return generate_curl(request.method, request.url, request.enabled_headers(), request.body)
