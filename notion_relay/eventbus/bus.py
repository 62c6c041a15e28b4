"""Event bus interface and the in-process implementation.

The gatekeeper only depends on the EventBus protocol. InMemoryEventBus fans
messages out to asyncio queues inside the current process (local development,
single-node deployments, tests); SQSEventBus in notion_relay.eventbus.sqs
sends them to a real queue.
"""

import asyncio
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Protocol

from notion_relay.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BusMessage:
    """A message as carried by the bus: opaque payload bytes plus string metadata."""

    payload: bytes = field(repr=False)
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    metadata: dict[str, str] = field(default_factory=dict)


class EventBusError(Exception):
    """The bus refused or could not accept a message."""


class NoSubscribersError(EventBusError):
    def __init__(self, topic: str):
        self.topic = topic
        super().__init__(f"No subscribers registered for topic {topic}")


class EventBusClosedError(EventBusError):
    def __init__(self):
        super().__init__("Event bus is closed")


class EventBus(Protocol):
    """Publish side of a pub/sub transport. Implementations must allow concurrent publish calls."""

    async def publish(self, topic: str, message: BusMessage) -> None:
        """Enqueue one message on `topic`.

        Raises:
            EventBusError: If the message was not accepted
        """
        ...

    async def health_check(self) -> dict[str, Any]: ...

    async def close(self) -> None: ...


class Subscription:
    """Async iterator over the messages delivered to one subscriber of a topic."""

    def __init__(self, bus: "InMemoryEventBus", topic: str, queue: asyncio.Queue):
        self._bus = bus
        self.topic = topic
        self._queue = queue

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> BusMessage:
        message = await self._queue.get()
        if message is None:
            raise StopAsyncIteration
        return message

    def pending(self) -> int:
        return self._queue.qsize()

    def unsubscribe(self) -> None:
        """Detach from the bus. Messages already queued are still delivered, then iteration ends."""
        if self._bus._remove_subscriber(self.topic, self._queue):
            self._queue.put_nowait(None)


class InMemoryEventBus:
    """In-process fan-out bus: every subscriber of a topic gets its own copy of each message.

    With reject_unrouted (the default) a publish to a topic nobody subscribes to fails instead of
    silently dropping the message, so the HTTP caller sees the failure and the sender redelivers.
    Publishing never awaits between looking up subscribers and enqueueing, so concurrent
    publishers on the same event loop need no extra locking.
    """

    def __init__(self, reject_unrouted: bool = True):
        self.reject_unrouted = reject_unrouted
        self._subscribers: dict[str, list[asyncio.Queue]] = defaultdict(list)
        self._closed = False
        self.published_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, topic: str) -> Subscription:
        if self._closed:
            raise EventBusClosedError()
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[topic].append(queue)
        logger.debug("Subscribed to topic", topic=topic)
        return Subscription(self, topic, queue)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, []))

    def _remove_subscriber(self, topic: str, queue: asyncio.Queue) -> bool:
        queues = self._subscribers.get(topic)
        if not queues or queue not in queues:
            return False
        queues.remove(queue)
        if not queues:
            del self._subscribers[topic]
        return True

    async def publish(self, topic: str, message: BusMessage) -> None:
        if self._closed:
            raise EventBusClosedError()

        queues = self._subscribers.get(topic)
        if not queues:
            if self.reject_unrouted:
                raise NoSubscribersError(topic)
            logger.warning("Dropping message for topic without subscribers", topic=topic)
            return

        for queue in queues:
            queue.put_nowait(message)
        self.published_count += 1

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "unhealthy" if self._closed else "healthy",
            "backend": "memory",
            "topics": {topic: len(queues) for topic, queues in self._subscribers.items()},
            "published": self.published_count,
        }

    async def close(self) -> None:
        """Stop accepting messages and end every subscription once its backlog is drained."""
        if self._closed:
            return
        self._closed = True
        for queues in self._subscribers.values():
            for queue in queues:
                queue.put_nowait(None)
        self._subscribers.clear()
