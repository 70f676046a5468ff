"""Deterministic fingerprints for request descriptors.

A fingerprint is the SHA-256 hex digest of a canonical serialisation::

    METHOD|URL|k1:v1|k2:v2|BODY|TIMESTAMP

where the header segment contains only *enabled* headers, sorted by key in
code-point order (identical to UTF-8 byte order) and joined with ``|``.
Disabled headers never influence the digest; every other field does.

The fingerprint doubles as the cache key in
:class:`~wiretap.cache.manager.ResponseCacheManager` and as the durable
record key in :class:`~wiretap.cache.store.DurableStore`.
"""

from __future__ import annotations

import hashlib

from wiretap.exceptions import FingerprintError
from wiretap.models import RequestDescriptor

DELIMITER = "|"
DIGEST = "sha256"


def canonicalize(req: RequestDescriptor) -> str:
    """Return the canonical string that :func:`fingerprint` hashes."""
    enabled = sorted((h for h in req.headers if h.enabled), key=lambda h: h.key)
    joined_headers = DELIMITER.join(f"{h.key}:{h.value}" for h in enabled)
    return DELIMITER.join(
        [req.method, req.url, joined_headers, req.body, str(req.timestamp)]
    )


def fingerprint(req: RequestDescriptor) -> str:
    """Compute the fingerprint of *req*.

    Args:
        req: The request descriptor, already stamped for this send.

    Returns:
        A 64-character lowercase hexadecimal digest.

    Raises:
        FingerprintError: If the interpreter cannot provide SHA-256
            (for example a restricted FIPS build).
    """
    try:
        digest = hashlib.new(DIGEST)
    except ValueError as exc:
        raise FingerprintError(f"Hash primitive {DIGEST!r} unavailable: {exc}") from exc
    digest.update(canonicalize(req).encode("utf-8"))
    return digest.hexdigest()
