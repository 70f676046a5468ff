"""Typed session events published on the ``sessions`` topic.

The multiplexer itself is payload-agnostic. Consumers of the ``sessions``
topic wrap their handler with :func:`session_handler` to receive a
:class:`~wiretap.models.NewSessionEvent` or
:class:`~wiretap.models.DeleteSessionEvent` instead of a raw dict.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from wiretap.models import SessionEvent

logger = logging.getLogger(__name__)

SESSIONS_TOPIC = "sessions"

_adapter: TypeAdapter[SessionEvent] = TypeAdapter(SessionEvent)


def parse_session_event(payload: Any) -> Optional[SessionEvent]:
    """Validate *payload* as a session event.

    Returns:
        The typed event, or ``None`` (logged) for unknown or malformed payloads.
    """
    try:
        return _adapter.validate_python(payload)
    except ValidationError as exc:
        logger.warning("Ignoring unrecognised session event: %s", exc)
        return None


def session_handler(handler: Callable[[SessionEvent], None]) -> Callable[[Any], None]:
    """Adapt a typed *handler* into a multiplexer callback."""

    def callback(payload: Any) -> None:
        event = parse_session_event(payload)
        if event is not None:
            handler(event)

    return callback
