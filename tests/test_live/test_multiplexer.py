"""Tests for LiveUpdateMultiplexer -- registry, dispatch, and reconnects."""

from __future__ import annotations

import asyncio
import json
import logging

import pytest

from wiretap.exceptions import MessageDecodeError
from wiretap.live.multiplexer import LiveUpdateMultiplexer, ReadyState, decode_message
from wiretap.models import LiveConfig

URL = "ws://inspector.test/api/ws"
FAST = LiveConfig(reconnect_base_delay=0.01, reconnect_max_delay=0.05)


def _msg(topic: str, payload) -> str:
    return json.dumps({"topic": topic, "payload": payload})


def _controls(ws) -> list[dict]:
    return [json.loads(m) for m in ws.sent]


@pytest.fixture
def mux() -> LiveUpdateMultiplexer:
    return LiveUpdateMultiplexer(URL, FAST)


@pytest.fixture
def live_mux(server) -> LiveUpdateMultiplexer:
    return LiveUpdateMultiplexer(URL, FAST, connect=server.connect)


# ------------------------------------------------------------------ #
# Decoding
# ------------------------------------------------------------------ #


class TestDecode:
    def test_valid(self) -> None:
        message = decode_message(_msg("sessions", {"a": 1}))
        assert message.topic == "sessions"
        assert message.payload == {"a": 1}

    def test_bytes(self) -> None:
        assert decode_message(_msg("t", 1).encode()).payload == 1

    @pytest.mark.parametrize("raw", ["not json", "[]", '{"payload": 1}', '{"topic": 5}'])
    def test_malformed(self, raw: str) -> None:
        with pytest.raises(MessageDecodeError):
            decode_message(raw)


# ------------------------------------------------------------------ #
# Registry and dispatch
# ------------------------------------------------------------------ #


class TestDispatch:
    def test_fan_out_in_registration_order(self, mux: LiveUpdateMultiplexer) -> None:
        calls: list[tuple[str, object]] = []
        mux.subscribe("t", lambda p: calls.append(("first", p)))
        mux.subscribe("t", lambda p: calls.append(("second", p)))

        assert mux.dispatch(_msg("t", {"n": 1})) == 2
        assert calls == [("first", {"n": 1}), ("second", {"n": 1})]

    def test_other_topics_not_called(self, mux: LiveUpdateMultiplexer) -> None:
        calls: list[object] = []
        mux.subscribe("a", calls.append)
        assert mux.dispatch(_msg("b", 1)) == 0
        assert calls == []

    def test_unknown_topic_is_noop(self, mux: LiveUpdateMultiplexer) -> None:
        assert mux.dispatch(_msg("nobody", 1)) == 0

    def test_unsubscribed_callback_not_called(self, mux: LiveUpdateMultiplexer) -> None:
        calls: list[object] = []
        mux.subscribe("t", calls.append)
        mux.unsubscribe("t", calls.append)
        mux.dispatch(_msg("t", 1))
        assert calls == []
        assert mux.topics() == {}

    def test_duplicate_subscribe_ignored(self, mux: LiveUpdateMultiplexer) -> None:
        calls: list[object] = []
        mux.subscribe("t", calls.append)
        mux.subscribe("t", calls.append)
        mux.dispatch(_msg("t", 1))
        assert calls == [1]
        assert mux.topics() == {"t": 1}

    def test_unsubscribe_unknown_is_noop(self, mux: LiveUpdateMultiplexer) -> None:
        mux.unsubscribe("t", print)
        mux.subscribe("t", print)
        mux.unsubscribe("t", len)
        assert mux.topics() == {"t": 1}

    def test_malformed_message_dropped(self, mux: LiveUpdateMultiplexer, caplog) -> None:
        calls: list[object] = []
        mux.subscribe("t", calls.append)
        with caplog.at_level(logging.WARNING, logger="wiretap.live.multiplexer"):
            assert mux.dispatch("{broken") == 0
            assert mux.dispatch('{"payload": 1}') == 0
        assert calls == []
        assert "Malformed" in caplog.text

    def test_raising_callback_isolated(self, mux: LiveUpdateMultiplexer, caplog) -> None:
        calls: list[object] = []

        def boom(payload: object) -> None:
            raise RuntimeError("subscriber bug")

        mux.subscribe("t", boom)
        mux.subscribe("t", calls.append)
        with caplog.at_level(logging.ERROR, logger="wiretap.live.multiplexer"):
            assert mux.dispatch(_msg("t", 7)) == 1
        assert calls == [7]
        assert "failed" in caplog.text

    def test_callback_unsubscribing_during_dispatch(self, mux: LiveUpdateMultiplexer) -> None:
        calls: list[str] = []

        def once(payload: object) -> None:
            calls.append("once")
            mux.unsubscribe("t", once)

        mux.subscribe("t", once)
        mux.subscribe("t", lambda p: calls.append("always"))
        mux.dispatch(_msg("t", 1))
        mux.dispatch(_msg("t", 2))
        assert calls == ["once", "always", "always"]

    def test_control_not_sent_while_closed(self, mux: LiveUpdateMultiplexer) -> None:
        mux.subscribe("t", print)
        assert mux.ready_state is ReadyState.UNINSTANTIATED
        assert mux._outbox.empty()


# ------------------------------------------------------------------ #
# Connection lifecycle
# ------------------------------------------------------------------ #


class TestConnection:
    @pytest.mark.asyncio
    async def test_subscriptions_sent_on_open(self, live_mux, server, settled) -> None:
        live_mux.subscribe("sessions", print)
        live_mux.subscribe("other", print)
        async with live_mux:
            ws = await server.next_socket()
            await live_mux.wait_open(timeout=1)
            await settled()
            assert _controls(ws) == [
                {"type": "subscribe", "topic": "sessions"},
                {"type": "subscribe", "topic": "other"},
            ]

    @pytest.mark.asyncio
    async def test_one_control_per_topic_while_open(self, live_mux, server, settled) -> None:
        async with live_mux:
            ws = await server.next_socket()
            await live_mux.wait_open(timeout=1)
            live_mux.subscribe("t", print)
            live_mux.subscribe("t", len)
            await settled()
            assert _controls(ws) == [{"type": "subscribe", "topic": "t"}]

            live_mux.unsubscribe("t", print)
            await settled()
            assert len(ws.sent) == 1

            live_mux.unsubscribe("t", len)
            await settled()
            assert _controls(ws)[-1] == {"type": "unsubscribe", "topic": "t"}

    @pytest.mark.asyncio
    async def test_inbound_frames_dispatched(self, live_mux, server) -> None:
        received = asyncio.Event()
        payloads: list[object] = []

        def on_message(payload: object) -> None:
            payloads.append(payload)
            received.set()

        live_mux.subscribe("sessions", on_message)
        async with live_mux:
            ws = await server.next_socket()
            ws.push("garbage")
            ws.push(_msg("sessions", {"id": "1"}))
            await asyncio.wait_for(received.wait(), 1)
        assert payloads == [{"id": "1"}]

    @pytest.mark.asyncio
    async def test_reconnect_resubscribes_every_topic(self, live_mux, server, settled) -> None:
        live_mux.subscribe("a", print)
        live_mux.subscribe("b", print)
        async with live_mux:
            first = await server.next_socket()
            await live_mux.wait_open(timeout=1)
            first.drop()

            second = await server.next_socket()
            await live_mux.wait_open(timeout=1)
            await settled()

        topics = {c["topic"] for c in _controls(second) if c["type"] == "subscribe"}
        assert topics == {"a", "b"}

    @pytest.mark.asyncio
    async def test_ready_state_transitions(self, live_mux, server) -> None:
        states: list[ReadyState] = []
        live_mux.on_state_change(states.append)
        assert live_mux.ready_state is ReadyState.UNINSTANTIATED

        live_mux.start()
        await server.next_socket()
        await live_mux.wait_open(timeout=1)
        await live_mux.stop()

        assert states == [
            ReadyState.CONNECTING,
            ReadyState.OPEN,
            ReadyState.CLOSING,
            ReadyState.CLOSED,
        ]
        assert live_mux.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_retries_after_refused_connection(self, make_server) -> None:
        server = make_server(refuse=2)
        mux = LiveUpdateMultiplexer(URL, FAST, connect=server.connect)
        async with mux:
            await server.next_socket()
            await mux.wait_open(timeout=1)
        assert server.attempts == 3

    @pytest.mark.asyncio
    async def test_no_reconnect_when_disabled(self, server, settled) -> None:
        config = LiveConfig(auto_reconnect=False, reconnect_base_delay=0.01)
        mux = LiveUpdateMultiplexer(URL, config, connect=server.connect)
        mux.start()
        ws = await server.next_socket()
        ws.drop()
        await asyncio.sleep(0.05)
        assert mux.ready_state is ReadyState.CLOSED
        assert server.attempts == 1
        await mux.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, live_mux, server) -> None:
        async with live_mux:
            live_mux.start()
            await server.next_socket()
            await live_mux.wait_open(timeout=1)
        assert server.attempts == 1

    @pytest.mark.asyncio
    async def test_registry_survives_stop(self, live_mux, server) -> None:
        live_mux.subscribe("t", print)
        async with live_mux:
            await server.next_socket()
        assert live_mux.topics() == {"t": 1}
