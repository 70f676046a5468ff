"""wiretap -- response cache and live-update core for an HTTP traffic inspector.

This package keeps every request sent from the inspector addressable by a
content *fingerprint*, caches the resulting response across an in-memory
tier and a durable on-disk tier, and keeps views live by fanning out push
notifications received over a single shared websocket.

Typical workflow::

    wiretap send GET https://httpbin.org/get -H "Accept: application/json"
    wiretap show <fingerprint>
    wiretap watch sessions

Modules:
    fingerprint: Deterministic SHA-256 fingerprint of a request descriptor.
    cache: Durable store adapter and the two-tier cache manager.
    live: Websocket multiplexer, subscription facades, and session events.
    client: Execute-request collaborator, send workflow, and cURL export.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration management.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
