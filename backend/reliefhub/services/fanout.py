"""In-process publish/subscribe broadcast of entity change events.

Delivery is at-most-once with no replay: a subscriber only sees events
published while it is registered. Each subscriber owns a bounded queue, so
publishing never waits on a consumer; a subscriber whose queue is full is
dropped instead of slowing the publisher down.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol
from uuid import uuid4

from reliefhub.core.logging import get_logger

logger = get_logger(__name__)

EntityKindName = Literal["disaster", "report", "resource"]
Operation = Literal["create", "update", "delete"]

DEFAULT_QUEUE_SIZE = 100
CHANNELS: dict[str, str] = {
    "disaster": "disaster_updated",
    "report": "report_updated",
    "resource": "resources_updated",
}
_CLOSED = object()


@dataclass(frozen=True)
class ChangeEvent:
    """Transient notification of one successful mutation."""

    entity_kind: EntityKindName
    operation: Operation
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def channel(self) -> str:
        return CHANNELS[self.entity_kind]

    def to_message(self) -> dict[str, Any]:
        """Shape the event the way connected observers consume it."""
        if self.operation == "delete":
            return {"type": "delete", **self.payload}
        return {"type": self.operation, self.entity_kind: self.payload}


class ChangeSink(Protocol):
    """Anything that accepts change events without blocking the caller."""

    def publish(self, event: ChangeEvent) -> int: ...


class Subscription:
    """Handle for one observer; iterate it to receive events in publish order."""

    def __init__(self, queue_size: int) -> None:
        self.id = uuid4().hex
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _offer(self, event: ChangeEvent) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Queued events may be discarded once a subscriber is gone.
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def drain(self) -> list[ChangeEvent]:
        """Return every event queued so far without waiting."""
        events: list[ChangeEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                break
            events.append(item)  # type: ignore[arg-type]
        return events

    async def get(self) -> ChangeEvent | None:
        """Wait for the next event; None once the subscription has ended."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class ChangeFanout:
    """Single-process broadcaster implementing `ChangeSink`."""

    def __init__(self, *, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self._queue_size = queue_size
        self._subscribers: dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self._queue_size)
        self._subscribers[subscription.id] = subscription
        logger.info(
            "fanout.subscriber.added",
            extra={"subscription_id": subscription.id, "subscribers": self.subscriber_count},
        )
        return subscription

    def unsubscribe(self, handle: Subscription) -> None:
        """Remove a subscriber; calling it again is a no-op."""
        removed = self._subscribers.pop(handle.id, None)
        handle._close()
        if removed is not None:
            logger.info(
                "fanout.subscriber.removed",
                extra={"subscription_id": handle.id, "subscribers": self.subscriber_count},
            )

    def publish(self, event: ChangeEvent) -> int:
        """Queue `event` for every current subscriber and return the delivery count."""
        delivered = 0
        for subscription in list(self._subscribers.values()):
            if subscription._offer(event):
                delivered += 1
                continue
            logger.warning(
                "fanout.subscriber.dropped",
                extra={
                    "subscription_id": subscription.id,
                    "channel": event.channel,
                    "queue_size": self._queue_size,
                },
            )
            self.unsubscribe(subscription)
        logger.debug(
            "fanout.event.published",
            extra={
                "channel": event.channel,
                "operation": event.operation,
                "delivered": delivered,
            },
        )
        return delivered

    def close(self) -> None:
        """End every subscription, e.g. on application shutdown."""
        for subscription in list(self._subscribers.values()):
            self.unsubscribe(subscription)
