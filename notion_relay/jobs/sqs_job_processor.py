"""
SQS job processing loop.

Polls a queue and hands each decoded message to a processing function. Messages are deleted only
after the function returns; anything it raises leaves the message for SQS to redeliver.
"""

import asyncio
import json
import signal
from collections.abc import Awaitable, Callable
from typing import Any, TypedDict

import newrelic.agent

from notion_relay.clients.sqs import SQSClient
from notion_relay.utils.logging import get_logger

logger = get_logger(__name__)


class SQSMessageMetadata(TypedDict):
    """Metadata extracted from SQS messages."""

    message_id: str | None
    receipt_handle: str | None
    approximate_receive_count: str | None


class SQSJobProcessor:
    """Generic SQS job processor that handles polling and message processing."""

    def __init__(
        self,
        queue_arn: str,
        process_function: Callable[[dict[str, Any], SQSMessageMetadata], Awaitable[None]],
        max_messages: int = 1,
        wait_time_seconds: int = 20,
        visibility_timeout_seconds: int = 300,
        sqs_client: SQSClient | None = None,
    ):
        """Initialize SQS job processor.

        Args:
            queue_arn: ARN of the SQS queue to poll
            process_function: Async function to process each message (message_data, sqs_metadata)
            max_messages: Maximum messages to receive per poll (1-10)
            wait_time_seconds: Long polling wait time (0-20 seconds)
            visibility_timeout_seconds: How long message is hidden from other consumers
            sqs_client: Optional SQS client to use. If None, creates a new one.
        """
        self.queue_arn = queue_arn
        self.process_function = process_function
        self.max_messages = max_messages
        self.wait_time_seconds = wait_time_seconds
        self.visibility_timeout_seconds = visibility_timeout_seconds

        self.sqs_client = sqs_client or SQSClient()
        self.running = False
        self.shutdown_event = asyncio.Event()
        # receipt_handle -> message, for releasing on shutdown
        self.in_progress_messages: dict[str, dict[str, Any]] = {}

    def setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""

        def signal_handler(signum: int, _frame: Any) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown...")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def process_message(self, message: dict[str, Any]) -> bool:
        """Process a single SQS message.

        Returns:
            True if the message should be deleted, False otherwise
        """
        receipt_handle = message.get("ReceiptHandle")
        if not receipt_handle:
            logger.warning("Message missing ReceiptHandle")
            return False

        body = message.get("Body", "")
        if not body:
            logger.warning("Received empty message body")
            return True

        try:
            message_data = json.loads(body)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse message body as JSON: {e}")
            return True  # delete this malformed message

        sqs_metadata: SQSMessageMetadata = {
            "message_id": message.get("MessageId"),
            "receipt_handle": receipt_handle,
            "approximate_receive_count": message.get("Attributes", {}).get(
                "ApproximateReceiveCount"
            ),
        }

        try:
            await self.process_function(message_data, sqs_metadata)
            return True
        except Exception as e:
            newrelic.agent.record_exception()
            logger.error(f"Error processing message: {e}", exc_info=True)
            return False

    async def poll_once(self) -> int:
        """Receive one batch and process it. Returns the number of messages deleted."""
        messages = await self.sqs_client.receive_messages(
            queue_arn=self.queue_arn,
            max_messages=self.max_messages,
            wait_time_seconds=self.wait_time_seconds,
            visibility_timeout_seconds=self.visibility_timeout_seconds,
        )

        deleted_count = 0
        for message in messages:
            receipt_handle: str | None = message.get("ReceiptHandle")
            if not receipt_handle:
                logger.warning("Message missing ReceiptHandle, skipping")
                continue

            if self.shutdown_event.is_set():
                logger.info("Shutdown in progress, not processing new messages")
                break

            self.in_progress_messages[receipt_handle] = message
            try:
                if await self.process_message(message):
                    if await self.sqs_client.delete_message(self.queue_arn, receipt_handle):
                        deleted_count += 1
                    else:
                        logger.error("Failed to delete processed message")
            finally:
                self.in_progress_messages.pop(receipt_handle, None)

        return deleted_count

    async def poll_and_process(self) -> None:
        """Main polling loop that receives and processes messages."""
        logger.info(f"Starting SQS job processor for queue: {self.queue_arn}")
        self.running = True

        while self.running and not self.shutdown_event.is_set():
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in polling loop: {e}", exc_info=True)
                # Back off a little so a broken queue doesn't spin the loop
                await asyncio.sleep(1)

        logger.info("SQS job processor stopped")

    async def start(self) -> None:
        """Start the job processor with signal handling."""
        self.setup_signal_handlers()

        try:
            await self.poll_and_process()
        finally:
            await self.shutdown()

    async def release_in_progress_messages(self) -> None:
        """Hand in-progress messages back to the queue by zeroing their visibility timeout."""
        if not self.in_progress_messages:
            return

        logger.info(f"Releasing {len(self.in_progress_messages)} in-progress messages back to queue")
        for receipt_handle in list(self.in_progress_messages):
            released = await self.sqs_client.change_message_visibility(
                self.queue_arn, receipt_handle, visibility_timeout=0
            )
            if not released:
                logger.warning(f"Failed to release message {receipt_handle[:20]}...")
        self.in_progress_messages.clear()

    async def shutdown(self) -> None:
        """Gracefully shutdown the processor."""
        logger.info("Shutting down SQS job processor...")
        self.running = False
        self.shutdown_event.set()
        await self.release_in_progress_messages()
