"""AWS SQS client for queue operations and message publishing."""

import asyncio
from collections.abc import Callable
from functools import wraps
from typing import Any

from notion_relay.clients.aws_base import AWSBaseClient
from notion_relay.utils.logging import get_logger

logger = get_logger(__name__)

MAX_SQS_VISIBILITY_TIMEOUT_SECONDS = 12 * 60 * 60  # 12 hours in seconds


def run_in_executor[T](func: Callable[..., T]) -> Callable[..., asyncio.Future[T]]:
    """Decorator to run boto3 calls in a thread pool to avoid blocking the event loop."""

    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(self, *args, **kwargs))

    return wrapper


def is_fifo_queue(queue_url: str) -> bool:
    return queue_url.endswith(".fifo")


class SQSClient(AWSBaseClient):
    """Client for AWS SQS (Simple Queue Service) operations."""

    def __init__(self, region_name: str | None = None):
        super().__init__("sqs", region_name)

    def _convert_arn_to_url(self, queue_arn: str) -> str:
        """Convert SQS queue ARN to URL format required by boto3.

        Args:
            queue_arn: SQS queue ARN (e.g., arn:aws:sqs:us-east-1:123456789012:my-queue)

        Returns:
            Queue URL (e.g., https://sqs.us-east-1.amazonaws.com/123456789012/my-queue)

        Raises:
            ValueError: If ARN format is invalid
        """
        # Already a URL (LocalStack endpoints are plain http)
        if queue_arn.startswith(("https://", "http://")):
            return queue_arn

        # arn:aws:sqs:region:account-id:queue-name
        arn_parts = queue_arn.split(":")
        if len(arn_parts) != 6 or arn_parts[0] != "arn" or arn_parts[2] != "sqs":
            raise ValueError(f"Invalid SQS ARN format: {queue_arn}")

        region, account_id, queue_name = arn_parts[3], arn_parts[4], arn_parts[5]
        return f"https://sqs.{region}.amazonaws.com/{account_id}/{queue_name}"

    @run_in_executor
    def _send_message_sync(self, send_params: dict[str, Any]) -> dict[str, Any]:
        return self.client.send_message(**send_params)

    async def send_message(
        self,
        queue_arn: str,
        message_body: str,
        message_group_id: str | None = None,
        message_attributes: dict[str, Any] | None = None,
        message_deduplication_id: str | None = None,
    ) -> str:
        """Send message to SQS queue.

        Group and deduplication ids are only sent to FIFO queues.

        Args:
            queue_arn: SQS queue ARN or URL
            message_body: Message body
            message_group_id: FIFO message group
            message_attributes: Optional message attributes
            message_deduplication_id: FIFO deduplication id

        Returns:
            The SQS MessageId

        Raises:
            Any boto3 error, after logging it
        """
        try:
            queue_url = self._convert_arn_to_url(queue_arn)

            send_params: dict[str, Any] = {
                "QueueUrl": queue_url,
                "MessageBody": message_body,
            }

            if message_attributes:
                send_params["MessageAttributes"] = message_attributes

            if is_fifo_queue(queue_url):
                send_params["MessageGroupId"] = message_group_id or "default"
                if message_deduplication_id:
                    send_params["MessageDeduplicationId"] = message_deduplication_id

            response = await self._send_message_sync(send_params)
            return response["MessageId"]

        except Exception as e:
            self.handle_aws_error(e, f"send_message to {queue_arn}")
            raise

    @run_in_executor
    def _receive_messages_sync(self, receive_params: dict[str, Any]) -> dict[str, Any]:
        return self.client.receive_message(**receive_params)

    async def receive_messages(
        self,
        queue_arn: str,
        max_messages: int = 1,
        wait_time_seconds: int = 0,
        visibility_timeout_seconds: int | None = None,
    ) -> list[dict[str, Any]]:
        """Receive messages from SQS queue.

        Args:
            queue_arn: SQS queue ARN
            max_messages: Maximum number of messages to receive (1-10)
            wait_time_seconds: Long polling wait time (0-20 seconds)
            visibility_timeout_seconds: How long message is hidden from other consumers

        Returns:
            List of received messages
        """
        try:
            queue_url = self._convert_arn_to_url(queue_arn)

            receive_params: dict[str, Any] = {
                "QueueUrl": queue_url,
                "MaxNumberOfMessages": min(max(max_messages, 1), 10),
                "WaitTimeSeconds": max(min(wait_time_seconds, 20), 0),
                "MessageAttributeNames": ["All"],
                "AttributeNames": ["ApproximateReceiveCount"],
            }

            if visibility_timeout_seconds is not None:
                receive_params["VisibilityTimeout"] = min(
                    visibility_timeout_seconds, MAX_SQS_VISIBILITY_TIMEOUT_SECONDS
                )

            response = await self._receive_messages_sync(receive_params)
            messages = response.get("Messages", [])

            logger.debug(f"Received {len(messages)} messages from queue {queue_arn}")
            return messages

        except Exception as e:
            self.handle_aws_error(e, f"receive_messages from {queue_arn}")
            raise

    @run_in_executor
    def _delete_message_sync(self, queue_url: str, receipt_handle: str) -> None:
        self.client.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt_handle)

    async def delete_message(self, queue_arn: str, receipt_handle: str) -> bool:
        """Delete message from SQS queue.

        Returns:
            True if successful, False otherwise
        """
        try:
            queue_url = self._convert_arn_to_url(queue_arn)
            await self._delete_message_sync(queue_url, receipt_handle)
            return True
        except Exception as e:
            logger.error(f"Failed to delete message from {queue_arn}: {e}")
            return False

    @run_in_executor
    def _change_message_visibility_sync(
        self, queue_url: str, receipt_handle: str, visibility_timeout: int
    ) -> None:
        self.client.change_message_visibility(
            QueueUrl=queue_url, ReceiptHandle=receipt_handle, VisibilityTimeout=visibility_timeout
        )

    async def change_message_visibility(
        self, queue_arn: str, receipt_handle: str, visibility_timeout: int
    ) -> bool:
        """Change the visibility timeout of a message. 0 hands it straight back to the queue.

        Returns:
            True if successful, False otherwise
        """
        try:
            queue_url = self._convert_arn_to_url(queue_arn)
            await self._change_message_visibility_sync(
                queue_url, receipt_handle, min(visibility_timeout, MAX_SQS_VISIBILITY_TIMEOUT_SECONDS)
            )
            return True
        except Exception as e:
            logger.error(f"Failed to change message visibility on {queue_arn}: {e}")
            return False

    @run_in_executor
    def _get_queue_attributes_sync(self, queue_url: str, attribute_names: list[str]) -> dict:
        return self.client.get_queue_attributes(QueueUrl=queue_url, AttributeNames=attribute_names)

    async def get_queue_attributes(self, queue_arn: str) -> dict[str, Any] | None:
        """Get queue attributes for health checking.

        Returns:
            Queue attributes dict if successful, None otherwise
        """
        try:
            queue_url = self._convert_arn_to_url(queue_arn)
            response = await self._get_queue_attributes_sync(
                queue_url, ["QueueArn", "ApproximateNumberOfMessages"]
            )
            return response.get("Attributes", {})
        except Exception as e:
            logger.error(f"Failed to get queue attributes for {queue_arn}: {e}")
            return None
