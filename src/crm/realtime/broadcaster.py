"""
Tenant-scoped real-time event fan-out.

Every tenant has exactly one channel. Mutations publish onto the channel of
the acting tenant; connected clients subscribe to the channel of their own
tenant. Delivery is at-most-once: publishing never waits on subscribers and a
subscriber whose queue is full loses the event.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from crm.shared.logging import get_logger

logger = get_logger(__name__)


def channel_name(company_id: int) -> str:
    return f"company-{company_id}-mainchannel"


def contact_event_name(company_id: int) -> str:
    return f"company-{company_id}-contact"


@dataclass(frozen=True)
class ChannelMessage:
    """One event as delivered to a subscriber."""

    channel: str
    event: str
    data: dict[str, Any]

    def as_frame(self) -> dict[str, Any]:
        return {"event": self.event, "data": self.data}


class EventBroadcaster(Protocol):
    """Publishes change notifications to a tenant's channel."""

    def publish(self, company_id: int, event_name: str, payload: dict[str, Any]) -> None:
        """Deliver payload to current subscribers of the tenant. Never blocks."""
        ...


class Subscription:
    """A single consumer attached to a tenant channel."""

    def __init__(self, channel: str, maxsize: int) -> None:
        self.channel = channel
        self._queue: asyncio.Queue[ChannelMessage] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, message: ChannelMessage) -> bool:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    async def get(self) -> ChannelMessage:
        """Wait for the next message on the channel."""
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()


class ConnectionHub:
    """In-process EventBroadcaster keeping subscribers per tenant channel."""

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._channels: dict[str, set[Subscription]] = {}

    def publish(self, company_id: int, event_name: str, payload: dict[str, Any]) -> None:
        channel = channel_name(company_id)
        subscribers = self._channels.get(channel)
        if not subscribers:
            logger.debug(
                "No subscribers for channel",
                extra={"channel": channel, "event": event_name},
            )
            return

        message = ChannelMessage(channel=channel, event=event_name, data=payload)
        for subscription in list(subscribers):
            if not subscription.offer(message):
                logger.warning(
                    "Subscriber queue full; event dropped",
                    extra={"channel": channel, "event": event_name},
                )

    @asynccontextmanager
    async def subscribe(self, company_id: int) -> AsyncIterator[Subscription]:
        """Attach a subscriber to the tenant channel for the duration of the block."""
        channel = channel_name(company_id)
        subscription = Subscription(channel, self._queue_size)
        self._channels.setdefault(channel, set()).add(subscription)
        logger.info("Subscriber attached", extra={"channel": channel})
        try:
            yield subscription
        finally:
            subscribers = self._channels.get(channel)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    del self._channels[channel]
            logger.info(
                "Subscriber detached",
                extra={"channel": channel, "dropped": subscription.dropped},
            )

    def subscriber_count(self, company_id: int) -> int:
        return len(self._channels.get(channel_name(company_id), ()))
