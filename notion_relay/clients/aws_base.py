"""Base AWS client for shared boto3 session management and configuration."""

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from notion_relay.utils.config import get_config_value, get_config_value_str
from notion_relay.utils.logging import get_logger

logger = get_logger(__name__)


class AWSBaseClient:
    """Base class for AWS service clients with shared configuration and session management."""

    def __init__(self, service_name: str, region_name: str | None = None):
        """Initialize AWS base client.

        Args:
            service_name: AWS service name (e.g., 'sqs')
            region_name: AWS region name, defaults to AWS_REGION or us-east-1
        """
        self.service_name = service_name
        self.region_name = region_name or get_config_value_str("AWS_REGION", "us-east-1")
        self._client: BaseClient | None = None
        self._session: boto3.Session | None = None

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session. Explicit keys win over the default credential chain."""
        if not self._session:
            access_key = get_config_value_str("AWS_ACCESS_KEY_ID")
            secret_key = get_config_value_str("AWS_SECRET_ACCESS_KEY")
            if access_key and secret_key:
                session_kwargs = {
                    "region_name": self.region_name,
                    "aws_access_key_id": access_key,
                    "aws_secret_access_key": secret_key,
                }
                session_token = get_config_value_str("AWS_SESSION_TOKEN")
                if session_token:
                    session_kwargs["aws_session_token"] = session_token

                self._session = boto3.Session(**session_kwargs)
            else:
                self._session = boto3.Session(region_name=self.region_name)
        return self._session

    @property
    def client(self) -> BaseClient:
        """Get or create boto3 client for the service, honouring AWS_ENDPOINT_URL (LocalStack)."""
        if not self._client:
            endpoint_url = get_config_value("AWS_ENDPOINT_URL")
            if endpoint_url:
                logger.debug(f"Using AWS endpoint URL: {endpoint_url}")
                self._client = self.session.client(self.service_name, endpoint_url=endpoint_url)
            else:
                self._client = self.session.client(self.service_name)
        return self._client

    def handle_aws_error(self, error: Exception, operation: str) -> None:
        """Log an AWS failure with its error code, then re-raise it.

        Raises:
            The original exception after logging
        """
        if isinstance(error, ClientError):
            error_code = error.response.get("Error", {}).get("Code", "Unknown")
            error_message = error.response.get("Error", {}).get("Message", str(error))
            logger.error(
                f"AWS {self.service_name} {operation} failed - {error_code}: {error_message}"
            )
        elif isinstance(error, BotoCoreError):
            logger.error(f"AWS {self.service_name} {operation} failed - BotoCore error: {error}")
        else:
            logger.error(f"AWS {self.service_name} {operation} failed - Unexpected error: {error}")

        raise error
