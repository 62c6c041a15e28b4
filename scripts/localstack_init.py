#!/usr/bin/env python
"""
Initialize LocalStack with the queue the relay publishes Notion webhooks to.

Run this before starting the gatekeeper with EVENT_BUS_BACKEND=sqs and
AWS_ENDPOINT_URL=http://localhost:4566.
"""

import logging
import os
import sys
import time

import boto3
import requests
from botocore.exceptions import ClientError

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

LOCALSTACK_ENDPOINT = os.environ.get("AWS_ENDPOINT_URL", "http://localhost:4566")
AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")
DEFAULT_QUEUE_ARN = "arn:aws:sqs:us-east-1:000000000000:notion-webhooks.fifo"


def get_queue_name_from_arn(arn_or_name: str) -> str:
    """Extract queue name from ARN or return the name as-is."""
    if arn_or_name.startswith("arn:aws:sqs:"):
        return arn_or_name.split(":")[-1]
    return arn_or_name


def get_queue_attributes(queue_name: str) -> dict[str, str]:
    attributes = {
        "DelaySeconds": "0",
        "MessageRetentionPeriod": "345600",  # 4 days
        "VisibilityTimeout": "300",  # matches SQSJobProcessor's default
    }
    if queue_name.endswith(".fifo"):
        # Deduplication ids are sent explicitly (the event id)
        attributes["FifoQueue"] = "true"
        attributes["ContentBasedDeduplication"] = "false"
    return attributes


def wait_for_localstack() -> bool:
    logger.info("Waiting for LocalStack to be ready...")
    for _ in range(30):
        try:
            response = requests.get(f"{LOCALSTACK_ENDPOINT}/_localstack/health", timeout=5)
            if response.status_code == 200:
                logger.info("LocalStack is ready!")
                return True
        except requests.RequestException:
            pass
        time.sleep(2)

    logger.error("LocalStack failed to start after 60 seconds")
    return False


def create_notion_webhook_queue(queue_arn: str) -> str:
    """Create the queue if it does not exist and return its URL."""
    sqs_client = boto3.client(
        "sqs",
        endpoint_url=LOCALSTACK_ENDPOINT,
        region_name=AWS_REGION,
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )

    queue_name = get_queue_name_from_arn(queue_arn)
    try:
        response = sqs_client.get_queue_url(QueueName=queue_name)
        logger.info(f"Queue '{queue_name}' already exists at {response['QueueUrl']}")
        return response["QueueUrl"]
    except ClientError as e:
        if e.response["Error"]["Code"] != "AWS.SimpleQueueService.NonExistentQueue":
            logger.error(f"Error checking queue '{queue_name}': {e}")
            raise

    response = sqs_client.create_queue(
        QueueName=queue_name, Attributes=get_queue_attributes(queue_name)
    )
    logger.info(f"Created queue '{queue_name}' at {response['QueueUrl']}")
    return response["QueueUrl"]


def main():
    queue_arn = os.environ.get("NOTION_WEBHOOK_QUEUE_ARN", DEFAULT_QUEUE_ARN)

    if not wait_for_localstack():
        logger.error("LocalStack is not available. Start it first.")
        sys.exit(1)

    try:
        queue_url = create_notion_webhook_queue(queue_arn)
    except Exception as e:
        logger.error(f"Failed to initialize LocalStack: {e}")
        sys.exit(1)

    logger.info("✅ LocalStack initialization completed successfully!")
    logger.info(f"  Endpoint: {LOCALSTACK_ENDPOINT}")
    logger.info(f"  Queue: {queue_url}")
    logger.info(f"Export NOTION_WEBHOOK_QUEUE_ARN={queue_arn} for the gatekeeper and event worker")


if __name__ == "__main__":
    main()
