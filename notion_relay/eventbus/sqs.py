"""EventBus implementation backed by AWS SQS queues, one queue per topic."""

from typing import Any

from notion_relay.clients.sqs import SQSClient
from notion_relay.eventbus.bus import BusMessage, EventBusError
from notion_relay.utils.logging import get_logger

logger = get_logger(__name__)


class SQSEventBus:
    """Publishes bus messages to the SQS queue mapped to each topic.

    The message body is the bus payload decoded as UTF-8. Topic and message uuid travel as message
    attributes; on FIFO queues the topic is the message group and the uuid the deduplication id.
    """

    def __init__(self, queue_arns: dict[str, str], sqs_client: SQSClient | None = None):
        self.queue_arns = dict(queue_arns)
        self.sqs_client = sqs_client or SQSClient()

    async def publish(self, topic: str, message: BusMessage) -> None:
        queue_arn = self.queue_arns.get(topic)
        if not queue_arn:
            raise EventBusError(f"No SQS queue configured for topic {topic}")

        try:
            body = message.payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EventBusError(f"SQS message bodies must be UTF-8 text: {e}") from e

        message_attributes = {
            "topic": {"StringValue": topic, "DataType": "String"},
            "message_uuid": {"StringValue": message.uuid, "DataType": "String"},
        }
        for key, value in message.metadata.items():
            message_attributes[key] = {"StringValue": value, "DataType": "String"}

        try:
            message_id = await self.sqs_client.send_message(
                queue_arn=queue_arn,
                message_body=body,
                message_group_id=topic,
                message_attributes=message_attributes,
                message_deduplication_id=message.uuid,
            )
        except Exception as e:
            raise EventBusError(f"Failed to send message to {queue_arn}: {e}") from e

        logger.info("Published message to SQS", topic=topic, sqs_message_id=message_id)

    async def health_check(self) -> dict[str, Any]:
        health_status: dict[str, Any] = {"status": "healthy", "backend": "sqs", "queues": {}}
        for topic, queue_arn in self.queue_arns.items():
            attributes = await self.sqs_client.get_queue_attributes(queue_arn)
            if attributes is None:
                health_status["queues"][topic] = "unhealthy: failed to get queue attributes"
                health_status["status"] = "unhealthy"
            else:
                health_status["queues"][topic] = "healthy"
        return health_status

    async def close(self) -> None:
        """Nothing to release, boto3 clients are closed with the process."""
