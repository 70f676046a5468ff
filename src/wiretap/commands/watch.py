"""Watch command -- stream live-update topics to stdout.

Connects to the inspector's websocket, subscribes to the requested topics
and prints every message as it arrives. ``sessions`` messages are decoded
into typed session events; other topics are printed as raw payloads.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

import typer

from wiretap.commands.common import load_config, run
from wiretap.output import OutputFormat, debug, get_output, info, print_data


def _render(topic: str, payload: Any) -> str:
    from wiretap.live.events import SESSIONS_TOPIC, parse_session_event
    from wiretap.models import NewSessionEvent

    if get_output().format == OutputFormat.JSON:
        return json.dumps({"topic": topic, "payload": payload}, ensure_ascii=False, default=str)
    if topic == SESSIONS_TOPIC:
        event = parse_session_event(payload)
        if isinstance(event, NewSessionEvent):
            s = event.session
            return "\t".join(
                [
                    "new_session",
                    s.id,
                    s.request_method,
                    s.request_path,
                    str(s.response_status_code),
                    f"{s.duration_ms}ms",
                ]
            )
        if event is not None:
            return "\t".join(["delete_session", ",".join(event.ids)])
    return f"{topic}\t{json.dumps(payload, ensure_ascii=False, default=str)}"


async def _watch(
    config,  # noqa: ANN001
    topics: list[str],
    count: Optional[int],
    timeout: Optional[float],
) -> int:
    from wiretap.config import websocket_url
    from wiretap.live import SubscriptionScope
    from wiretap.runtime import get_multiplexer

    mux = get_multiplexer(websocket_url(config), config.live)
    received = 0
    done = asyncio.Event()

    def handler(topic: str) -> Callable[[Any], None]:
        def on_message(payload: Any) -> None:
            nonlocal received
            print_data(_render(topic, payload))
            received += 1
            if count is not None and received >= count:
                done.set()

        return on_message

    remove_listener = mux.on_state_change(lambda state: debug(f"Live updates: {state.name}"))
    with SubscriptionScope(mux) as scope:
        for topic in topics:
            scope.use_topic(topic, handler(topic))
        info(f"Watching {', '.join(topics)} on {mux.url}")
        async with mux:
            try:
                await asyncio.wait_for(done.wait(), timeout)
            except asyncio.TimeoutError:
                debug(f"Stopped after {timeout}s")
    remove_listener()
    return received


def watch_command(
    ctx: typer.Context,
    topics: Optional[list[str]] = typer.Argument(
        None, help="Topics to follow. Defaults to 'sessions'."
    ),
    count: Optional[int] = typer.Option(
        None, "--count", "-n", min=1, help="Exit after this many messages."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", min=0, help="Exit after this many seconds."
    ),
) -> None:
    """Stream live updates from the inspector.

    Runs until interrupted unless ``--count`` or ``--timeout`` is given.
    The connection is re-established automatically when it drops.

    Example::

        wiretap watch
        wiretap --json watch sessions --count 10
    """
    from wiretap.live.events import SESSIONS_TOPIC

    config = load_config(ctx)
    run(_watch(config, topics or [SESSIONS_TOPIC], count, timeout))
