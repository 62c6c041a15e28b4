"""
Pydantic models for messages carried on the event bus.

Consumers decode these from the bus payload, so field names are part of the wire contract.
"""

from __future__ import annotations

import base64
import binascii
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class NotionWebhookEnvelope(BaseModel):
    """
    A verified Notion notification.

    `payload` is the base64 encoding of the request body exactly as Notion sent it, so
    consumers can recover the original bytes (and re-verify a signature if they need to).
    """

    message_type: Literal["notion_webhook"] = "notion_webhook"
    event_id: str
    payload: str
    received_at: str = Field(default_factory=_utc_now_iso)

    @field_validator("payload")
    @classmethod
    def _payload_is_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"payload is not valid base64: {e}") from e
        return value

    @classmethod
    def from_raw(cls, event_id: str, raw_payload: bytes) -> NotionWebhookEnvelope:
        return cls(event_id=event_id, payload=base64.b64encode(raw_payload).decode("ascii"))

    def raw_payload(self) -> bytes:
        return base64.b64decode(self.payload)
