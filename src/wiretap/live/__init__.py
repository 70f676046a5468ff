"""Live updates for wiretap.

:class:`LiveUpdateMultiplexer` shares one websocket between every consumer
and dispatches ``{topic, payload}`` messages to per-topic callbacks.
:class:`SubscriptionScope` and :class:`TopicSubscription` give consumers a
stable registration whose handler can change between refreshes.
"""

from wiretap.live.events import SESSIONS_TOPIC, parse_session_event, session_handler
from wiretap.live.multiplexer import LiveUpdateMultiplexer, ReadyState
from wiretap.live.subscription import SubscriptionScope, TopicSubscription

__all__ = [
    "LiveUpdateMultiplexer",
    "ReadyState",
    "SESSIONS_TOPIC",
    "SubscriptionScope",
    "TopicSubscription",
    "parse_session_event",
    "session_handler",
]
