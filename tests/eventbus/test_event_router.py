import asyncio

import pytest

from notion_relay.eventbus.bus import BusMessage, InMemoryEventBus
from notion_relay.eventbus.router import EventRouter

TOPIC = "notion.webhook.received"


@pytest.mark.asyncio
async def test_handler_receives_published_messages():
    bus = InMemoryEventBus()
    router = EventRouter(bus)
    received: list[bytes] = []

    async def handler(message: BusMessage) -> None:
        received.append(message.payload)

    router.add_handler("collector", TOPIC, handler)
    router.start()

    await bus.publish(TOPIC, BusMessage(payload=b"one"))
    await bus.publish(TOPIC, BusMessage(payload=b"two"))
    await router.stop()

    assert received == [b"one", b"two"]
    assert router.processed_count == 2
    assert not router.running


@pytest.mark.asyncio
async def test_messages_published_before_start_are_buffered():
    bus = InMemoryEventBus()
    router = EventRouter(bus)
    received: list[bytes] = []

    async def handler(message: BusMessage) -> None:
        received.append(message.payload)

    router.add_handler("collector", TOPIC, handler)
    await bus.publish(TOPIC, BusMessage(payload=b"early"))

    router.start()
    await router.stop()

    assert received == [b"early"]


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_the_router():
    bus = InMemoryEventBus()
    router = EventRouter(bus)
    received: list[bytes] = []

    async def handler(message: BusMessage) -> None:
        if message.payload == b"bad":
            raise RuntimeError("boom")
        received.append(message.payload)

    router.add_handler("flaky", TOPIC, handler)
    router.start()

    for payload in (b"bad", b"good"):
        await bus.publish(TOPIC, BusMessage(payload=payload))
    await router.stop()

    assert received == [b"good"]
    assert router.failed_count == 1
    assert router.processed_count == 1


@pytest.mark.asyncio
async def test_each_handler_gets_its_own_copy():
    bus = InMemoryEventBus()
    router = EventRouter(bus)
    seen: dict[str, int] = {"a": 0, "b": 0}

    def counting(name: str):
        async def handler(message: BusMessage) -> None:
            seen[name] += 1

        return handler

    router.add_handler("a", TOPIC, counting("a"))
    router.add_handler("b", TOPIC, counting("b"))
    router.start()

    await bus.publish(TOPIC, BusMessage(payload=b"x"))
    await router.stop()

    assert seen == {"a": 1, "b": 1}


def test_duplicate_handler_name_is_rejected():
    router = EventRouter(InMemoryEventBus())

    async def handler(message: BusMessage) -> None:
        pass

    router.add_handler("dup", TOPIC, handler)
    with pytest.raises(ValueError):
        router.add_handler("dup", TOPIC, handler)


@pytest.mark.asyncio
async def test_run_returns_when_bus_closes():
    bus = InMemoryEventBus()
    router = EventRouter(bus)

    async def handler(message: BusMessage) -> None:
        pass

    router.add_handler("noop", TOPIC, handler)
    run_task = asyncio.create_task(router.run())
    await asyncio.sleep(0)

    await bus.close()
    await asyncio.wait_for(run_task, timeout=1)

    assert not router.running
