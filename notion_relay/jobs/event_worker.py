"""
Event worker for Notion webhook notifications.

Consumes NotionWebhookEnvelope messages, either from the in-process bus (wired up by the gatekeeper
when EVENT_BUS_BACKEND=memory) or by polling the SQS queue when run as its own process:

    python -m notion_relay.jobs.event_worker
"""

import asyncio
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from connectors.notion import extract_notion_webhook_metadata
from notion_relay.eventbus.bus import BusMessage
from notion_relay.jobs.models import NotionWebhookEnvelope
from notion_relay.jobs.sqs_job_processor import SQSJobProcessor, SQSMessageMetadata
from notion_relay.utils.config import load_settings
from notion_relay.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


async def handle_notion_webhook_event(envelope: NotionWebhookEnvelope) -> None:
    """Process one relayed Notion notification.

    Downstream sync jobs hang off this; for now it records what arrived.
    """
    payload = envelope.raw_payload()
    metadata = extract_notion_webhook_metadata(payload)

    with LogContext(event_id=envelope.event_id):
        logger.info(
            "Processing Notion webhook event",
            received_at=envelope.received_at,
            **metadata,
        )


async def handle_bus_message(message: BusMessage) -> None:
    """Adapter from in-process BusMessages to handle_notion_webhook_event."""
    try:
        envelope = NotionWebhookEnvelope.model_validate_json(message.payload)
    except ValidationError as e:
        logger.error(f"Dropping malformed Notion webhook envelope: {e}", message_uuid=message.uuid)
        return
    await handle_notion_webhook_event(envelope)


async def process_sqs_message(message_data: dict[str, Any], sqs_metadata: SQSMessageMetadata) -> None:
    """SQSJobProcessor callback. Raising leaves the message on the queue for redelivery."""
    try:
        envelope = NotionWebhookEnvelope.model_validate(message_data)
    except ValidationError as e:
        # Redelivery can't fix a bad envelope; returning lets the processor delete it
        logger.error(
            f"Dropping malformed Notion webhook envelope: {e}",
            sqs_message_id=sqs_metadata["message_id"],
        )
        return

    with LogContext(sqs_message_id=sqs_metadata["message_id"]):
        await handle_notion_webhook_event(envelope)


async def main() -> None:
    load_dotenv()
    settings = load_settings()
    if not settings.notion_webhook_queue_arn:
        raise ValueError("NOTION_WEBHOOK_QUEUE_ARN is required to run the event worker")

    processor = SQSJobProcessor(
        queue_arn=settings.notion_webhook_queue_arn,
        process_function=process_sqs_message,
    )
    await processor.start()


if __name__ == "__main__":
    asyncio.run(main())
