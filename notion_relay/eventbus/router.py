"""In-process consumer side of the event bus.

Handlers are registered per topic and each runs in its own task, reading from
its own subscription. A failing handler is logged and moves on to the next
message; it never takes the router down.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import newrelic.agent

from notion_relay.eventbus.bus import BusMessage, InMemoryEventBus, Subscription
from notion_relay.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

MessageHandler = Callable[[BusMessage], Awaitable[None]]


@dataclass
class _Registration:
    name: str
    topic: str
    handler: MessageHandler
    subscription: Subscription


class EventRouter:
    """Dispatches messages from an InMemoryEventBus to registered handlers."""

    def __init__(self, bus: InMemoryEventBus):
        self.bus = bus
        self._registrations: list[_Registration] = []
        self._tasks: list[asyncio.Task] = []
        self.processed_count = 0
        self.failed_count = 0

    def add_handler(self, name: str, topic: str, handler: MessageHandler) -> None:
        """Register `handler` for `topic`.

        The subscription is created immediately, so messages published before start() are buffered
        rather than rejected.
        """
        if any(registration.name == name for registration in self._registrations):
            raise ValueError(f"Handler {name!r} is already registered")

        subscription = self.bus.subscribe(topic)
        self._registrations.append(_Registration(name, topic, handler, subscription))
        logger.info("Registered event handler", handler=name, topic=topic)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def _consume(self, registration: _Registration) -> None:
        async for message in registration.subscription:
            with LogContext(handler=registration.name, message_uuid=message.uuid):
                try:
                    await registration.handler(message)
                    self.processed_count += 1
                except Exception as e:
                    self.failed_count += 1
                    newrelic.agent.record_exception()
                    logger.error(
                        f"Event handler {registration.name} failed: {e}",
                        topic=registration.topic,
                        exc_info=True,
                    )

    def start(self) -> None:
        """Start one consumer task per registered handler on the running loop."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._consume(registration), name=f"event-handler-{registration.name}")
            for registration in self._registrations
        ]
        logger.info(f"Event router started with {len(self._tasks)} handler(s)")

    async def run(self) -> None:
        """Start the handlers and wait until every subscription has ended."""
        self.start()
        await asyncio.gather(*self._tasks)

    async def stop(self) -> None:
        """Unsubscribe every handler, let queued messages drain and wait for the tasks to exit."""
        for registration in self._registrations:
            registration.subscription.unsubscribe()

        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        logger.info(
            "Event router stopped",
            processed=self.processed_count,
            failed=self.failed_count,
        )
