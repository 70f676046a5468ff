"""One shared websocket, many topic subscribers.

:class:`LiveUpdateMultiplexer` owns the single live-update connection of the
process and a registry of ``topic -> callbacks``. Consumers never touch the
socket; they call :meth:`~LiveUpdateMultiplexer.subscribe` and
:meth:`~LiveUpdateMultiplexer.unsubscribe`, which are synchronous and legal
in any :class:`ReadyState`.

Wire format::

    inbound   {"topic": "sessions", "payload": {...}}
    outbound  {"type": "subscribe" | "unsubscribe", "topic": "sessions"}

The server keeps no subscription state across connections, so every time
the socket (re)opens the multiplexer re-sends ``subscribe`` for each
registered topic. Control messages produced while the socket is down are
therefore not queued.

Usage::

    mux = LiveUpdateMultiplexer("ws://localhost:20000/api/ws")
    mux.subscribe("sessions", print)
    async with mux:
        await asyncio.sleep(60)
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, AsyncContextManager, Callable, Optional, Protocol

import websockets
from pydantic import ValidationError

from wiretap.exceptions import MessageDecodeError
from wiretap.models import ControlMessage, InboundMessage, LiveConfig

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]
"""Receives the ``payload`` of every message published on a topic."""


class ReadyState(int, enum.Enum):
    """Connection readiness, numbered like the browser ``WebSocket`` states."""

    UNINSTANTIATED = -1
    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


class Connection(Protocol):
    """The part of a websocket client connection the multiplexer relies on."""

    async def send(self, message: str) -> None: ...

    def __aiter__(self) -> Any: ...


ConnectFactory = Callable[[str], AsyncContextManager[Connection]]


def decode_message(raw: str | bytes) -> InboundMessage:
    """Parse one inbound frame into an :class:`~wiretap.models.InboundMessage`.

    Raises:
        MessageDecodeError: If the frame is not JSON or lacks a string ``topic``.
    """
    try:
        return InboundMessage.model_validate_json(raw)
    except ValidationError as exc:
        raise MessageDecodeError(f"Malformed live-update message: {exc}") from exc


class LiveUpdateMultiplexer:
    """Fan inbound websocket messages out to per-topic callbacks.

    Args:
        url: Websocket endpoint of the inspector server.
        config: Reconnect behaviour. Defaults to :class:`~wiretap.models.LiveConfig`.
        connect: Factory returning an async context manager that yields a
            connection. Defaults to :func:`websockets.connect`.
    """

    def __init__(
        self,
        url: str,
        config: Optional[LiveConfig] = None,
        connect: Optional[ConnectFactory] = None,
    ) -> None:
        self._url = url
        self._config = config or LiveConfig()
        self._connect: ConnectFactory = connect or websockets.connect
        self._topics: dict[str, list[Callback]] = {}
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._ready_state = ReadyState.UNINSTANTIATED
        self._opened = asyncio.Event()
        self._state_listeners: list[Callable[[ReadyState], None]] = []
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    def topics(self) -> dict[str, int]:
        """Snapshot of registered topics and their callback counts."""
        return {topic: len(callbacks) for topic, callbacks in self._topics.items()}

    # ------------------------------------------------------------------ #
    # Registry
    # ------------------------------------------------------------------ #

    def subscribe(self, topic: str, callback: Callback) -> None:
        """Register *callback* for *topic*.

        The first callback on a topic sends a ``subscribe`` control message;
        later ones only join the local registry. Registering the same
        callback twice has no effect.
        """
        callbacks = self._topics.get(topic)
        if callbacks is None:
            callbacks = self._topics[topic] = []
            self._send_control("subscribe", topic)
        if callback not in callbacks:
            callbacks.append(callback)

    def unsubscribe(self, topic: str, callback: Callback) -> None:
        """Remove *callback* from *topic*.

        Removing the last callback sends ``unsubscribe`` and drops the topic.
        Unknown topics and callbacks are ignored.
        """
        callbacks = self._topics.get(topic)
        if callbacks is None or callback not in callbacks:
            return
        callbacks.remove(callback)
        if not callbacks:
            del self._topics[topic]
            self._send_control("unsubscribe", topic)

    def dispatch(self, raw: str | bytes) -> int:
        """Deliver one inbound frame to the callbacks of its topic.

        Malformed frames are logged and dropped. Callbacks run synchronously
        in registration order; one raising does not stop the others.

        Returns:
            The number of callbacks that ran without raising.
        """
        try:
            message = decode_message(raw)
        except MessageDecodeError as exc:
            logger.warning("%s", exc)
            return 0

        delivered = 0
        for callback in list(self._topics.get(message.topic, ())):
            try:
                callback(message.payload)
            except Exception:
                logger.exception("Subscriber for topic %r failed", message.topic)
            else:
                delivered += 1
        return delivered

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def on_state_change(self, listener: Callable[[ReadyState], None]) -> Callable[[], None]:
        """Call *listener* on every readiness transition. Returns a remover."""
        self._state_listeners.append(listener)

        def remove() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return remove

    def start(self) -> None:
        """Start the connection loop in the background. Idempotent."""
        if self._task is not None and not self._task.done():
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Close the connection and stop reconnecting. The registry is kept."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        self._set_state(ReadyState.CLOSING)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._set_state(ReadyState.CLOSED)

    async def wait_open(self, timeout: Optional[float] = None) -> None:
        """Block until the socket is open.

        Raises:
            asyncio.TimeoutError: If *timeout* elapses first.
        """
        await asyncio.wait_for(self._opened.wait(), timeout)

    async def __aenter__(self) -> LiveUpdateMultiplexer:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _set_state(self, state: ReadyState) -> None:
        if state is self._ready_state:
            return
        self._ready_state = state
        if state is ReadyState.OPEN:
            self._opened.set()
        else:
            self._opened.clear()
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Ready-state listener failed")

    def _send_control(self, kind: str, topic: str) -> None:
        if self._ready_state is not ReadyState.OPEN:
            logger.debug("Socket not open; %s %r deferred to next open", kind, topic)
            return
        message = ControlMessage(type=kind, topic=topic)
        self._outbox.put_nowait(message.model_dump_json())

    def _replay_subscriptions(self) -> None:
        while not self._outbox.empty():
            self._outbox.get_nowait()
        for topic in self._topics:
            self._outbox.put_nowait(ControlMessage(type="subscribe", topic=topic).model_dump_json())

    async def _run(self) -> None:
        """Maintain the connection, reconnecting with exponential backoff."""
        base = self._config.reconnect_base_delay
        backoff = base

        while self._running:
            self._set_state(ReadyState.CONNECTING)
            try:
                async with self._connect(self._url) as ws:
                    backoff = base
                    logger.info("Live updates connected to %s", self._url)
                    self._set_state(ReadyState.OPEN)
                    self._replay_subscriptions()
                    writer = asyncio.create_task(self._write_loop(ws))
                    try:
                        async for message in ws:
                            self.dispatch(message)
                    finally:
                        writer.cancel()
                        try:
                            await writer
                        except asyncio.CancelledError:
                            pass
                logger.info("Live-update connection to %s closed", self._url)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.debug(
                    "Live-update connection to %s failed: %s (retry in %.1fs)",
                    self._url, exc, backoff,
                )

            self._set_state(ReadyState.CLOSED)
            if not (self._running and self._config.auto_reconnect):
                self._running = False
                break
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, self._config.reconnect_max_delay)

    async def _write_loop(self, ws: Connection) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await ws.send(message)
            except websockets.ConnectionClosed:
                logger.debug("Dropped control message on closed socket: %s", message)
                return


__all__ = [
    "Callback",
    "ConnectFactory",
    "Connection",
    "LiveUpdateMultiplexer",
    "ReadyState",
    "decode_message",
]
