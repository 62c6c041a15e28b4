"""Error taxonomy for webhook ingestion.

Every failure the gatekeeper can report is one of the WebhookError subclasses
below. The HTTP status for each is looked up in STATUS_CODES rather than
derived from the error text.
"""

from enum import Enum


class WebhookErrorCode(str, Enum):
    """Machine-readable codes returned in the `code` field of error responses."""

    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"
    MISSING_SIGNATURE = "MISSING_SIGNATURE"
    MALFORMED_SIGNATURE = "INVALID_SIGNATURE_FORMAT"
    SIGNATURE_MISMATCH = "INVALID_SIGNATURE"
    BODY_UNREADABLE = "BODY_UNREADABLE"
    SERIALIZATION_FAILED = "SERIALIZATION_FAILED"
    PUBLISH_REJECTED = "PUBLISH_FAILED"


STATUS_CODES: dict[WebhookErrorCode, int] = {
    WebhookErrorCode.CONFIGURATION_MISSING: 500,
    WebhookErrorCode.MISSING_SIGNATURE: 401,
    WebhookErrorCode.MALFORMED_SIGNATURE: 401,
    WebhookErrorCode.SIGNATURE_MISMATCH: 401,
    WebhookErrorCode.BODY_UNREADABLE: 400,
    WebhookErrorCode.SERIALIZATION_FAILED: 500,
    WebhookErrorCode.PUBLISH_REJECTED: 500,
}


class WebhookError(Exception):
    """Base class for webhook ingestion failures.

    Subclasses fix `code` and the default client-facing `message`. The
    optional `detail` is for logs only and is never sent to the caller.
    """

    code: WebhookErrorCode
    message: str

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.code]

    def to_response_body(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code.value}


class ConfigurationMissing(WebhookError):
    code = WebhookErrorCode.CONFIGURATION_MISSING
    message = "Webhook secret not configured"


class MissingSignature(WebhookError):
    code = WebhookErrorCode.MISSING_SIGNATURE
    message = "Missing webhook signature header"


class MalformedSignature(WebhookError):
    code = WebhookErrorCode.MALFORMED_SIGNATURE
    message = "Invalid signature format"


class SignatureMismatch(WebhookError):
    code = WebhookErrorCode.SIGNATURE_MISMATCH
    message = "Invalid webhook signature"


class BodyUnreadable(WebhookError):
    code = WebhookErrorCode.BODY_UNREADABLE
    message = "Failed to read request body"


class SerializationFailed(WebhookError):
    code = WebhookErrorCode.SERIALIZATION_FAILED
    message = "Failed to process webhook"


class PublishRejected(WebhookError):
    code = WebhookErrorCode.PUBLISH_REJECTED
    message = "Failed to publish webhook event"
