"""Fake websocket server for multiplexer tests."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import pytest


class FakeSocket:
    """In-memory connection: records sends, yields queued inbound frames."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.inbound: asyncio.Queue[Optional[str]] = asyncio.Queue()

    async def send(self, message: str) -> None:
        self.sent.append(message)

    def push(self, message: str) -> None:
        self.inbound.put_nowait(message)

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self.inbound.put_nowait(None)

    def __aiter__(self) -> FakeSocket:
        return self

    async def __anext__(self) -> str:
        message = await self.inbound.get()
        if message is None:
            raise StopAsyncIteration
        return message


class FakeServer:
    """Hands out a new FakeSocket per connection attempt.

    ``refuse`` connection attempts fail with ``OSError`` before any succeed.
    """

    def __init__(self, refuse: int = 0) -> None:
        self.sockets: list[FakeSocket] = []
        self.attempts = 0
        self._refuse = refuse
        self._connected: asyncio.Queue[FakeSocket] = asyncio.Queue()

    @asynccontextmanager
    async def connect(self, url: str) -> AsyncIterator[FakeSocket]:
        self.attempts += 1
        if self.attempts <= self._refuse:
            raise OSError("connection refused")
        ws = FakeSocket()
        self.sockets.append(ws)
        self._connected.put_nowait(ws)
        yield ws

    async def next_socket(self, timeout: float = 2.0) -> FakeSocket:
        return await asyncio.wait_for(self._connected.get(), timeout)


async def settle(rounds: int = 10) -> None:
    """Let background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def settled():
    """The :func:`settle` helper, for tests that need background tasks to run."""
    return settle


@pytest.fixture
def make_server():
    """Factory for FakeServer instances with custom behaviour."""
    return FakeServer
