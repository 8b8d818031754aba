"""Subscription multiplexing over the shared connection.

Any number of event/trigger subscriptions share the one channel. Each is
keyed by the id of the command that created it; push frames carrying
that id are routed to its callback, synchronously and in arrival order.

Lifecycle:
- subscribe: record the subscription, then send the subscribe command.
  Recording first means an event sent right after the acknowledgment is
  never missed. A failed command removes the record before re-raising.
- unsubscribe: deactivate locally, send unsubscribe_events, then drop
  the record whatever the upstream says. Frames that arrive in between
  hit an inactive subscription and are dropped.
- connection loss: every subscription is deactivated; nothing is
  re-established automatically.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .correlator import Correlator
from .errors import HassWsError
from .protocol import Command, EventMessage

logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], None]
EventFilter = Callable[[dict[str, Any]], bool]


@dataclass(eq=False)
class Subscription:
    """A standing interest in push events.

    Calling the subscription (``await subscription()``) unsubscribes it,
    so it can be handed out directly as the unsubscribe function.
    """

    id: int
    kind: str
    callback: EventCallback
    event_filter: EventFilter | None = None
    active: bool = True
    _multiplexer: SubscriptionMultiplexer | None = field(default=None, repr=False)

    async def unsubscribe(self) -> None:
        """Cancel this subscription (best effort, never raises)."""
        if self._multiplexer is not None:
            await self._multiplexer.unsubscribe(self)

    async def __call__(self) -> None:
        await self.unsubscribe()


class SubscriptionMultiplexer:
    """Registry of live subscriptions and router for push frames."""

    def __init__(self, correlator: Correlator) -> None:
        self._correlator = correlator
        self._subscriptions: dict[int, Subscription] = {}

    @property
    def active_count(self) -> int:
        """Number of subscriptions currently receiving events."""
        return sum(1 for s in self._subscriptions.values() if s.active)

    async def subscribe(
        self,
        command: Command,
        callback: EventCallback,
        *,
        event_filter: EventFilter | None = None,
        timeout: float | None = None,
    ) -> Subscription:
        """Register a subscription and send its subscribe command.

        Args:
            command: subscribe_events or subscribe_trigger command
            callback: Called with each event payload
            event_filter: Optional predicate; events failing it are skipped
            timeout: Seconds to wait for the acknowledgment

        Returns:
            The active Subscription (awaitable-callable to unsubscribe)

        Raises:
            Any error of the subscribe command; nothing stays registered
        """
        subscription_id = self._correlator.allocate_id()
        subscription = Subscription(
            id=subscription_id,
            kind=command.type,
            callback=callback,
            event_filter=event_filter,
            _multiplexer=self,
        )
        self._subscriptions[subscription_id] = subscription

        try:
            await self._correlator.call(command, message_id=subscription_id, timeout=timeout)
        except BaseException:
            subscription.active = False
            self._subscriptions.pop(subscription_id, None)
            raise

        logger.debug(f"Subscription {subscription_id} active ({command.type})")
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Cancel a subscription.

        The subscription stops receiving events before the cancellation
        is sent. A failed cancellation is logged, not raised.
        """
        if subscription.id not in self._subscriptions:
            subscription.active = False
            return

        subscription.active = False
        try:
            await self._correlator.call(Command.unsubscribe_events(subscription.id))
        except HassWsError as e:
            logger.warning(f"Cancelling subscription {subscription.id} failed: {e}")
        finally:
            self._subscriptions.pop(subscription.id, None)

        logger.debug(f"Subscription {subscription.id} removed")

    def dispatch(self, message: EventMessage) -> bool:
        """Route a push frame to its subscription.

        Returns:
            True if the frame reached an active subscription
        """
        subscription = self._subscriptions.get(message.id)
        if subscription is None or not subscription.active:
            logger.debug(f"Dropping event for inactive subscription {message.id}")
            return False

        try:
            if subscription.event_filter is None or subscription.event_filter(message.event):
                subscription.callback(message.event)
        except Exception:
            logger.exception(f"Error in callback for subscription {subscription.id}")
        return True

    def deactivate_all(self) -> int:
        """Deactivate and forget every subscription (connection loss).

        Returns:
            Number of subscriptions deactivated
        """
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.active = False
        if subscriptions:
            logger.info(f"Deactivated {len(subscriptions)} subscription(s)")
        return len(subscriptions)
