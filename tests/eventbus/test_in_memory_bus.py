import asyncio

import pytest

from notion_relay.eventbus.bus import (
    BusMessage,
    EventBusClosedError,
    InMemoryEventBus,
    NoSubscribersError,
)

TOPIC = "notion.webhook.received"


@pytest.mark.asyncio
async def test_publish_delivers_to_every_subscriber():
    bus = InMemoryEventBus()
    first = bus.subscribe(TOPIC)
    second = bus.subscribe(TOPIC)
    message = BusMessage(payload=b"hello")

    await bus.publish(TOPIC, message)

    assert await anext(first) is message
    assert await anext(second) is message
    assert bus.published_count == 1


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_rejected():
    bus = InMemoryEventBus()
    bus.subscribe("other.topic")

    with pytest.raises(NoSubscribersError) as exc_info:
        await bus.publish(TOPIC, BusMessage(payload=b"hello"))

    assert exc_info.value.topic == TOPIC
    assert bus.published_count == 0


@pytest.mark.asyncio
async def test_publish_without_subscribers_can_drop():
    bus = InMemoryEventBus(reject_unrouted=False)

    await bus.publish(TOPIC, BusMessage(payload=b"hello"))

    assert bus.published_count == 0


@pytest.mark.asyncio
async def test_messages_keep_publish_order():
    bus = InMemoryEventBus()
    subscription = bus.subscribe(TOPIC)

    for index in range(5):
        await bus.publish(TOPIC, BusMessage(payload=str(index).encode()))

    received = [(await anext(subscription)).payload for _ in range(5)]
    assert received == [b"0", b"1", b"2", b"3", b"4"]


@pytest.mark.asyncio
async def test_concurrent_publishes_are_all_delivered():
    bus = InMemoryEventBus()
    subscription = bus.subscribe(TOPIC)

    await asyncio.gather(
        *(bus.publish(TOPIC, BusMessage(payload=str(i).encode())) for i in range(50))
    )

    assert subscription.pending() == 50
    assert bus.published_count == 50


@pytest.mark.asyncio
async def test_unsubscribe_drains_backlog_then_ends():
    bus = InMemoryEventBus()
    subscription = bus.subscribe(TOPIC)
    await bus.publish(TOPIC, BusMessage(payload=b"queued"))

    subscription.unsubscribe()

    assert [message.payload async for message in subscription] == [b"queued"]
    assert bus.subscriber_count(TOPIC) == 0
    with pytest.raises(NoSubscribersError):
        await bus.publish(TOPIC, BusMessage(payload=b"late"))


@pytest.mark.asyncio
async def test_unsubscribe_twice_is_harmless():
    bus = InMemoryEventBus()
    subscription = bus.subscribe(TOPIC)

    subscription.unsubscribe()
    subscription.unsubscribe()

    assert subscription.pending() == 1  # a single end-of-stream marker


@pytest.mark.asyncio
async def test_close_ends_subscriptions_and_rejects_publishes():
    bus = InMemoryEventBus()
    subscription = bus.subscribe(TOPIC)

    await bus.close()

    assert bus.closed
    assert [message async for message in subscription] == []
    with pytest.raises(EventBusClosedError):
        await bus.publish(TOPIC, BusMessage(payload=b"hello"))
    with pytest.raises(EventBusClosedError):
        bus.subscribe(TOPIC)


@pytest.mark.asyncio
async def test_health_check():
    bus = InMemoryEventBus()
    bus.subscribe(TOPIC)
    await bus.publish(TOPIC, BusMessage(payload=b"hello"))

    health = await bus.health_check()

    assert health == {
        "status": "healthy",
        "backend": "memory",
        "topics": {TOPIC: 1},
        "published": 1,
    }

    await bus.close()
    assert (await bus.health_check())["status"] == "unhealthy"


def test_bus_message_defaults():
    first = BusMessage(payload=b"secret-ish")
    second = BusMessage(payload=b"secret-ish")

    assert first.uuid != second.uuid
    assert first.metadata == {}
    assert "secret-ish" not in repr(first)
