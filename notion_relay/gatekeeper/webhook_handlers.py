"""Webhook ingestion for the gatekeeper service.

A request moves through
AwaitingBody -> Authenticating -> Classifying -> (Responding(Handshake) | Publishing -> Responding(Notification)).
The secret is checked before the body is read, so an unconfigured service answers 500 even to a
client that disconnects mid-body. Any failure leaves the pipeline by raising a WebhookError, which
the route layer turns into a JSON error response. The raw body is read once and the same bytes are
used for the signature check, classification and the published event.
"""

from collections.abc import Callable

from fastapi import Request
from starlette.requests import ClientDisconnect

from connectors.notion import (
    NotionWebhookVerifier,
    classify_notion_webhook,
    extract_notion_webhook_metadata,
)
from notion_relay.gatekeeper.errors import BodyUnreadable, ConfigurationMissing, WebhookError
from notion_relay.gatekeeper.events import IdGenerator, build_webhook_event
from notion_relay.gatekeeper.models import (
    ClassificationResult,
    Handshake,
    HandshakeResponse,
    NotificationResponse,
    RawPayload,
    SignatureProof,
)
from notion_relay.gatekeeper.publisher import WebhookEventPublisher
from notion_relay.gatekeeper.verification import WebhookVerifier
from notion_relay.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

HANDSHAKE_MESSAGE = (
    "Verification token received. Please use this token in your Notion integration settings."
)
NOTIFICATION_MESSAGE = "Webhook event processed successfully"


class NotionWebhookIngestor:
    """Request-scoped pipeline for Notion webhooks.

    Built once at startup with the shared secret and its collaborators; holds no per-request
    state, so concurrent requests can share one instance.
    """

    def __init__(
        self,
        secret: str,
        publisher: WebhookEventPublisher,
        id_generator: IdGenerator,
        verifier: WebhookVerifier | None = None,
        classifier: Callable[[RawPayload], ClassificationResult] = classify_notion_webhook,
    ):
        self._secret = secret
        self.publisher = publisher
        self.id_generator = id_generator
        self.verifier = verifier or NotionWebhookVerifier()
        self.classifier = classifier

    @property
    def signature_header(self) -> str:
        return self.verifier.signature_header

    def ensure_configured(self) -> None:
        """Raises ConfigurationMissing when no webhook secret is set."""
        if not self._secret:
            raise ConfigurationMissing("NOTION_WEBHOOK_SECRET is empty")

    async def ingest(
        self, payload: RawPayload, signature: str | None
    ) -> HandshakeResponse | NotificationResponse:
        """Authenticate, classify and (for notifications) publish one webhook.

        Raises:
            WebhookError: On any authentication or publication failure
        """
        self.verifier.verify(SignatureProof(signature=signature, secret=self._secret), payload)

        classification = self.classifier(payload)

        if isinstance(classification, Handshake):
            logger.info("Received Notion webhook verification token")
            return HandshakeResponse(message=HANDSHAKE_MESSAGE, token=classification.token)

        event = build_webhook_event(payload, self.id_generator)
        metadata = extract_notion_webhook_metadata(payload)
        tracking_context = {f"webhook_meta_{key}": value for key, value in metadata.items()}

        with LogContext(event_id=event.id, **tracking_context):
            logger.info("Webhook verification successful for notion")
            await self.publisher.publish(event)

        return NotificationResponse(message=NOTIFICATION_MESSAGE)


async def read_raw_payload(request: Request) -> RawPayload:
    """Read the full request body.

    Raises:
        BodyUnreadable: If the client went away before the body was complete
    """
    try:
        return await request.body()
    except ClientDisconnect as e:
        raise BodyUnreadable("client disconnected while sending body") from e


async def handle_notion_webhook(request: Request) -> HandshakeResponse | NotificationResponse:
    """Handle a Notion webhook delivery end to end."""
    ingestor: NotionWebhookIngestor = request.app.state.notion_ingestor
    payload: RawPayload | None = None

    try:
        # A missing secret is reported as such even when the body never arrives
        ingestor.ensure_configured()
        payload = await read_raw_payload(request)
        signature = request.headers.get(ingestor.signature_header)
        return await ingestor.ingest(payload, signature)
    except WebhookError as e:
        log = logger.error if e.status_code >= 500 else logger.warning
        log(
            f"Rejected notion webhook: {e.message}",
            code=e.code.value,
            detail=e.detail,
            payload_size=len(payload) if payload is not None else None,
        )
        raise
