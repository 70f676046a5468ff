"""Stable subscriptions over a :class:`~wiretap.live.multiplexer.LiveUpdateMultiplexer`.

Views re-declare their interest in a topic every time they refresh, usually
with a freshly created handler. Registering each new handler directly would
churn ``subscribe``/``unsubscribe`` on the wire and could drop messages in
between. Instead a :class:`TopicSubscription` registers one stable
trampoline and swaps the handler it forwards to.

:class:`SubscriptionScope` is the per-consumer bookkeeping on top: call
:meth:`~SubscriptionScope.use_topic` as often as you like, and
:meth:`~SubscriptionScope.close` when the consumer goes away.

Example::

    scope = SubscriptionScope(mux)

    def render():
        scope.use_topic("sessions", lambda payload: refresh(payload))

    render()
    render()        # still one registration, latest lambda wins
    scope.close()
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from wiretap.live.multiplexer import Callback, LiveUpdateMultiplexer, ReadyState

logger = logging.getLogger(__name__)


class TopicSubscription:
    """One multiplexer registration that forwards to the latest handler.

    Args:
        multiplexer: The shared multiplexer.
        topic: Topic to subscribe to.
        on_message: Initial handler for message payloads.
    """

    def __init__(
        self,
        multiplexer: LiveUpdateMultiplexer,
        topic: str,
        on_message: Callback,
    ) -> None:
        self._multiplexer = multiplexer
        self._topic = topic
        self._latest = on_message
        self._trampoline: Callback = self._forward
        self._active = True
        multiplexer.subscribe(topic, self._trampoline)

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def active(self) -> bool:
        return self._active

    def update(self, on_message: Callback) -> None:
        """Route future messages to *on_message*. The registration is untouched."""
        self._latest = on_message

    def close(self) -> None:
        """Unregister from the multiplexer. Safe to call twice."""
        if not self._active:
            return
        self._active = False
        self._multiplexer.unsubscribe(self._topic, self._trampoline)

    def _forward(self, payload: Any) -> None:
        self._latest(payload)

    def __enter__(self) -> TopicSubscription:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class SubscriptionScope:
    """All topic subscriptions held by one consumer.

    Args:
        multiplexer: The shared multiplexer, usually
            :func:`wiretap.runtime.get_multiplexer`.
    """

    def __init__(self, multiplexer: LiveUpdateMultiplexer) -> None:
        self._multiplexer = multiplexer
        self._subscriptions: dict[str, TopicSubscription] = {}

    @property
    def ready_state(self) -> ReadyState:
        return self._multiplexer.ready_state

    def use_topic(self, topic: str, on_message: Callback) -> ReadyState:
        """Declare interest in *topic*, delivering payloads to *on_message*.

        Subscribes once per distinct topic; later calls only replace the
        handler.

        Returns:
            The multiplexer's current :class:`ReadyState`.
        """
        subscription = self._subscriptions.get(topic)
        if subscription is None:
            self._subscriptions[topic] = TopicSubscription(self._multiplexer, topic, on_message)
        else:
            subscription.update(on_message)
        return self._multiplexer.ready_state

    def release(self, topic: str) -> None:
        """Drop interest in *topic*."""
        subscription: Optional[TopicSubscription] = self._subscriptions.pop(topic, None)
        if subscription is not None:
            subscription.close()

    def topics(self) -> list[str]:
        return list(self._subscriptions)

    def close(self) -> None:
        """Release every topic held by this scope."""
        for topic in list(self._subscriptions):
            self.release(topic)
        logger.debug("Subscription scope closed")

    def __enter__(self) -> SubscriptionScope:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
