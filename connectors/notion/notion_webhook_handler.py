"""
Notion webhook handling: signature verification, handshake detection and metadata extraction.

Notion signs every webhook delivery with HMAC-SHA256 over the raw body, sent as
`X-Notion-Signature: sha256=<hex>`. When a subscription is first created Notion sends a single
`{"verification_token": "..."}` payload that the integration owner has to paste back into the
Notion dashboard; everything else is a regular event notification.
"""

import json
import logging
from typing import Any

from notion_relay.gatekeeper.models import ClassificationResult, Handshake, Notification
from notion_relay.gatekeeper.verification import BaseSigningSecretVerifier

logger = logging.getLogger(__name__)

NOTION_SIGNATURE_HEADER = "x-notion-signature"


class NotionWebhookVerifier(BaseSigningSecretVerifier):
    """Verifier for Notion webhooks using HMAC-SHA256 signatures."""

    signature_header = NOTION_SIGNATURE_HEADER
    signature_prefix = "sha256="


def _parse_json_object(payload: bytes) -> dict[str, Any] | None:
    try:
        parsed = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def classify_notion_webhook(payload: bytes) -> ClassificationResult:
    """Decide whether a verified payload is the setup handshake or a notification.

    Anything that is not a JSON object with a non-empty string `verification_token` is treated as a
    notification, so a payload that merely fails to parse is still delivered.
    """
    parsed = _parse_json_object(payload)
    if parsed is None:
        return Notification()

    token = parsed.get("verification_token")
    if isinstance(token, str) and token:
        return Handshake(token=token)

    return Notification()


def extract_notion_webhook_metadata(payload: bytes) -> dict[str, str | int]:
    """Extract metadata from a Notion webhook for observability.

    Safely extracts key information without failing webhook processing.

    Args:
        payload: Raw webhook body

    Returns:
        Dictionary containing extracted metadata with at least payload_size
    """
    metadata: dict[str, str | int] = {"payload_size": len(payload)}

    parsed = _parse_json_object(payload)
    if parsed is None:
        metadata["parse_error"] = "Failed to parse JSON object"
        return metadata

    try:
        if "verification_token" in parsed:
            # Don't log the actual token
            metadata["event_type"] = "verification_token"
            return metadata

        # Common event properties documented by Notion
        metadata["id"] = str(parsed.get("id", ""))
        metadata["type"] = str(parsed.get("type", "unknown"))
        metadata["time"] = str(parsed.get("timestamp", ""))
        metadata["workspace_id"] = str(parsed.get("workspace_id", ""))
        metadata["subscription_id"] = str(parsed.get("subscription_id", ""))
        metadata["integration_id"] = str(parsed.get("integration_id", ""))
        metadata["attempt_number"] = int(parsed.get("attempt_number", 0) or 0)

        # The object that triggered the event
        if isinstance(entity := parsed.get("entity"), dict):
            metadata["entity_type"] = str(entity.get("type", "unknown"))
            metadata["entity_id"] = str(entity.get("id", ""))

        # Who performed the action
        if isinstance(authors := parsed.get("authors"), list) and authors:
            metadata["author_count"] = len(authors)
            first_author = authors[0]
            if isinstance(first_author, dict):
                metadata["primary_author_id"] = str(first_author.get("id", ""))
                metadata["primary_author_type"] = str(first_author.get("type", ""))

    except (TypeError, ValueError) as e:
        logger.warning(f"Error extracting Notion webhook metadata: {e}")
        metadata["extraction_error"] = str(e)

    return metadata
