from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from notion_relay.clients.sqs import SQSClient, is_fifo_queue

QUEUE_ARN = "arn:aws:sqs:us-east-1:123456789012:notion-webhooks"
QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/notion-webhooks"
FIFO_ARN = "arn:aws:sqs:us-east-1:123456789012:notion-webhooks.fifo"


@pytest.fixture
def boto_client():
    client = MagicMock()
    client.send_message.return_value = {"MessageId": "sqs-1"}
    return client


@pytest.fixture
def sqs_client(boto_client):
    client = SQSClient(region_name="us-east-1")
    client._client = boto_client
    return client


class TestConvertArnToUrl:
    def test_arn(self, sqs_client):
        assert sqs_client._convert_arn_to_url(QUEUE_ARN) == QUEUE_URL

    @pytest.mark.parametrize(
        "url", [QUEUE_URL, "http://localhost:4566/000000000000/notion-webhooks"]
    )
    def test_urls_pass_through(self, sqs_client, url):
        assert sqs_client._convert_arn_to_url(url) == url

    @pytest.mark.parametrize("arn", ["not-an-arn", "arn:aws:sns:us-east-1:1:topic", "arn:aws:sqs:x"])
    def test_invalid(self, sqs_client, arn):
        with pytest.raises(ValueError):
            sqs_client._convert_arn_to_url(arn)


def test_is_fifo_queue():
    assert is_fifo_queue("https://sqs.us-east-1.amazonaws.com/1/q.fifo")
    assert not is_fifo_queue(QUEUE_URL)


@pytest.mark.asyncio
async def test_send_message_standard_queue_omits_fifo_fields(sqs_client, boto_client):
    message_id = await sqs_client.send_message(
        QUEUE_ARN, "{}", message_group_id="topic", message_deduplication_id="webhook_1"
    )

    assert message_id == "sqs-1"
    boto_client.send_message.assert_called_once_with(QueueUrl=QUEUE_URL, MessageBody="{}")


@pytest.mark.asyncio
async def test_send_message_fifo_queue(sqs_client, boto_client):
    attributes = {"topic": {"StringValue": "t", "DataType": "String"}}

    await sqs_client.send_message(
        FIFO_ARN,
        "{}",
        message_group_id="t",
        message_attributes=attributes,
        message_deduplication_id="webhook_1",
    )

    kwargs = boto_client.send_message.call_args.kwargs
    assert kwargs["MessageGroupId"] == "t"
    assert kwargs["MessageDeduplicationId"] == "webhook_1"
    assert kwargs["MessageAttributes"] == attributes


@pytest.mark.asyncio
async def test_send_message_reraises_aws_errors(sqs_client, boto_client):
    boto_client.send_message.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "nope"}}, "SendMessage"
    )

    with pytest.raises(ClientError):
        await sqs_client.send_message(QUEUE_ARN, "{}")


@pytest.mark.asyncio
async def test_receive_messages_clamps_parameters(sqs_client, boto_client):
    boto_client.receive_message.return_value = {"Messages": [{"MessageId": "m1"}]}

    messages = await sqs_client.receive_messages(
        QUEUE_ARN, max_messages=50, wait_time_seconds=60, visibility_timeout_seconds=10**6
    )

    assert messages == [{"MessageId": "m1"}]
    kwargs = boto_client.receive_message.call_args.kwargs
    assert kwargs["MaxNumberOfMessages"] == 10
    assert kwargs["WaitTimeSeconds"] == 20
    assert kwargs["VisibilityTimeout"] == 12 * 60 * 60


@pytest.mark.asyncio
async def test_delete_and_visibility_report_failures(sqs_client, boto_client):
    assert await sqs_client.delete_message(QUEUE_ARN, "receipt-1") is True

    boto_client.delete_message.side_effect = RuntimeError("gone")
    boto_client.change_message_visibility.side_effect = RuntimeError("gone")

    assert await sqs_client.delete_message(QUEUE_ARN, "receipt-1") is False
    assert await sqs_client.change_message_visibility(QUEUE_ARN, "receipt-1", 0) is False


@pytest.mark.asyncio
async def test_get_queue_attributes(sqs_client, boto_client):
    boto_client.get_queue_attributes.return_value = {"Attributes": {"QueueArn": QUEUE_ARN}}
    assert await sqs_client.get_queue_attributes(QUEUE_ARN) == {"QueueArn": QUEUE_ARN}

    boto_client.get_queue_attributes.side_effect = RuntimeError("unreachable")
    assert await sqs_client.get_queue_attributes(QUEUE_ARN) is None
