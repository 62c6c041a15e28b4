"""Publishes accepted webhook events to the event bus."""

import asyncio

from pydantic import ValidationError

from notion_relay.eventbus.bus import BusMessage, EventBus, EventBusError
from notion_relay.gatekeeper.errors import PublishRejected, SerializationFailed
from notion_relay.gatekeeper.models import DomainEvent
from notion_relay.jobs.models import NotionWebhookEnvelope
from notion_relay.utils.logging import get_logger

logger = get_logger(__name__)


class WebhookEventPublisher:
    """Hands DomainEvents to the bus on a single fixed topic.

    One call, one bus message. Failures are raised straight back to the caller; there is no retry
    here because the webhook sender redelivers on a non-2xx response.
    """

    def __init__(self, event_bus: EventBus, topic: str):
        self.event_bus = event_bus
        self.topic = topic

    def _encode(self, event: DomainEvent) -> BusMessage:
        try:
            envelope = NotionWebhookEnvelope.from_raw(event.id, event.payload)
            body = envelope.model_dump_json().encode("utf-8")
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"Failed to serialize webhook event {event.id}: {e}")
            raise SerializationFailed(str(e)) from e

        return BusMessage(payload=body, uuid=event.id, metadata={"event_kind": event.kind})

    async def publish(self, event: DomainEvent) -> None:
        """Publish one event.

        Raises:
            SerializationFailed: The envelope could not be encoded
            PublishRejected: The bus did not accept the message
        """
        message = self._encode(event)

        try:
            await self.event_bus.publish(self.topic, message)
        except asyncio.CancelledError:
            # The backend may finish the send after we stop waiting (boto3 runs in a thread)
            logger.warning(
                "Webhook event publish cancelled, the message may still have been delivered",
                event_id=event.id,
                topic=self.topic,
            )
            raise
        except EventBusError as e:
            logger.error(f"Failed to publish webhook event: {e}", event_id=event.id, topic=self.topic)
            raise PublishRejected(str(e)) from e
        except Exception as e:
            # A backend that blows up is as unavailable as one that refuses
            logger.error(
                f"Unexpected error publishing webhook event: {e}",
                event_id=event.id,
                topic=self.topic,
                exc_info=True,
            )
            raise PublishRejected(str(e)) from e

        logger.info("Published webhook event", event_id=event.id, topic=self.topic)
