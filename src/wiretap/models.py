"""Canonical Pydantic models shared across all wiretap modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`LiveConfig`, :class:`ServerConfig`,
    :class:`OutputConfig`, and :class:`GlobalConfig`.

**Cache models** -- what the fingerprint generator hashes and what the
two-tier cache stores:
    :class:`Header`, :class:`RequestDescriptor`, :class:`ResponseData`,
    :class:`ResponseState`, and :class:`CacheEntry`.

**Live-update models** -- wire shapes exchanged over the websocket:
    :class:`InboundMessage`, :class:`ControlMessage`, :class:`SessionStub`,
    :class:`NewSessionEvent`, :class:`DeleteSessionEvent`.

All models use Pydantic v2 with ``model_config`` where needed.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MAX_ENTRIES = 1000
"""Maximum number of responses kept in the durable store."""

DEFAULT_API_URL = "http://localhost:20000"
"""Where the inspector server listens unless configured otherwise."""


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


# --- Configuration ---


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Persist responses to disk")
    max_entries: int = Field(
        default=DEFAULT_MAX_ENTRIES,
        ge=1,
        description="Durable entries kept before the oldest are evicted",
    )
    memory_max_entries: Optional[int] = Field(
        default=None,
        ge=0,
        description="In-memory entries kept; None follows max_entries, 0 is unbounded",
    )
    directory: Optional[str] = Field(
        default=None, description="Override the durable store directory"
    )

    @property
    def memory_capacity(self) -> Optional[int]:
        """Resolved in-memory bound, or ``None`` when unbounded."""
        if self.memory_max_entries is None:
            return self.max_entries
        return self.memory_max_entries or None


class LiveConfig(BaseModel):
    """Live-update websocket settings stored in :class:`GlobalConfig`."""

    url: Optional[str] = Field(
        default=None, description="Websocket URL; derived from server.api_url when unset"
    )
    auto_reconnect: bool = Field(default=True, description="Reconnect on unexpected close")
    reconnect_base_delay: float = Field(
        default=1.0, gt=0, description="Initial reconnect backoff in seconds"
    )
    reconnect_max_delay: float = Field(
        default=60.0, gt=0, description="Backoff cap in seconds"
    )


class ServerConfig(BaseModel):
    """Inspector server connection settings stored in :class:`GlobalConfig`."""

    api_url: str = Field(default=DEFAULT_API_URL, description="Inspector API base URL")
    timeout: float = Field(
        default=1800.0, gt=0, description="Execute-request timeout in seconds"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/wiretap/config.json``.

    Loaded and saved by :func:`~wiretap.config.load_global_config` and
    :func:`~wiretap.config.save_global_config`. See
    :func:`~wiretap.config.resolve_config` for the precedence chain.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    live: LiveConfig = Field(default_factory=LiveConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Requests and responses ---


class Header(BaseModel):
    """A single request header row as edited in the request builder."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str = ""
    enabled: bool = True
    id: Optional[str] = None


class RequestDescriptor(BaseModel):
    """Everything that identifies one user-issued send.

    ``timestamp`` carries no request semantics; it only forces a fresh
    fingerprint when an otherwise identical request is sent again. Use
    :meth:`restamped` before every send.

    Example::

        RequestDescriptor(
            method="GET",
            url="https://x/y",
            headers=[Header(key="A", value="1")],
            timestamp=1000,
        )
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str
    headers: list[Header] = Field(default_factory=list)
    body: str = ""
    timestamp: int = Field(default_factory=now_ms)

    def restamped(self, timestamp: Optional[int] = None) -> RequestDescriptor:
        """Return a copy with a new timestamp strictly after the current one."""
        if timestamp is None:
            timestamp = max(now_ms(), self.timestamp + 1)
        return self.model_copy(update={"timestamp": timestamp})

    def enabled_headers(self) -> dict[str, str]:
        """Enabled headers with a non-blank key, in declaration order."""
        return {h.key: h.value for h in self.headers if h.enabled and h.key.strip()}


class ResponseData(BaseModel):
    """The outcome of a completed send as reported by the inspector server.

    ``body`` is opaque and may be base64 when the payload is binary.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: int
    status_text: str = Field(default="", alias="statusText")
    headers: dict[str, Union[str, list[str]]] = Field(default_factory=dict)
    body: str = ""
    duration: int = Field(default=0, description="Round trip in milliseconds")


class ResponseState(BaseModel):
    """Cache value for one fingerprint.

    One of ``loading``, ``error`` or ``data`` describes the phase; ``request``
    keeps a snapshot of the descriptor that triggered the send.
    """

    loading: bool = False
    error: Optional[str] = None
    data: Optional[ResponseData] = None
    request: Optional[RequestDescriptor] = None

    @property
    def is_terminal(self) -> bool:
        return not self.loading and (self.error is not None or self.data is not None)

    @property
    def is_empty(self) -> bool:
        return not self.loading and self.error is None and self.data is None and self.request is None

    def merged(self, changes: dict[str, Any]) -> ResponseState:
        """Shallow-merge *changes* over this state and validate the result."""
        return ResponseState.model_validate({**self.model_dump(), **changes})


class CacheEntry(ResponseState):
    """A :class:`ResponseState` as persisted in the durable store.

    ``timestamp`` is the write time in seconds and only orders eviction.
    """

    hash: str
    timestamp: float

    def to_state(self) -> ResponseState:
        return ResponseState.model_validate(self.model_dump(exclude={"hash", "timestamp"}))


# --- Live updates ---


class InboundMessage(BaseModel):
    """Envelope of every message pushed by the server."""

    topic: str
    payload: Any = None


class ControlMessage(BaseModel):
    """Out-of-band subscription control sent to the server."""

    type: Literal["subscribe", "unsubscribe"]
    topic: str


class SessionStub(BaseModel):
    """Summary of a proxied session as published on the ``sessions`` topic."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="ID")
    config_id: str = Field(default="", alias="ConfigID")
    response_status_code: int = Field(default=0, alias="ResponseStatusCode")
    request_method: str = Field(default="", alias="RequestMethod")
    request_path: str = Field(default="", alias="RequestPath")
    timestamp: Optional[datetime] = Field(default=None, alias="Timestamp")
    duration_ms: int = Field(default=0, alias="DurationMs")
    note: str = Field(default="", alias="Note")
    tags: str = Field(default="", alias="Tags")


class NewSessionEvent(BaseModel):
    """A session was recorded (or its response arrived)."""

    type: Literal["new_session"] = "new_session"
    session: SessionStub


class DeleteSessionEvent(BaseModel):
    """Sessions were removed, typically by the server's row reaper."""

    type: Literal["delete_session"] = "delete_session"
    ids: list[str] = Field(default_factory=list)


SessionEvent = Annotated[
    Union[NewSessionEvent, DeleteSessionEvent], Field(discriminator="type")
]
