"""Models for the gatekeeper service."""

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel

# Raw request body exactly as received on the wire. Never re-serialized.
RawPayload = bytes


@dataclass(frozen=True)
class SignatureProof:
    """Signature material for one request: the header value and the shared secret."""

    signature: str | None
    secret: str = field(repr=False)


@dataclass(frozen=True)
class Handshake:
    """One-time endpoint ownership challenge carrying the verification token."""

    token: str = field(repr=False)


@dataclass(frozen=True)
class Notification:
    """Any payload that is not a handshake."""


ClassificationResult = Handshake | Notification


@dataclass(frozen=True)
class DomainEvent:
    """An accepted notification, ready for the event bus."""

    id: str
    payload: RawPayload = field(repr=False)
    kind: Literal["notification"] = "notification"


class HandshakeResponse(BaseModel):
    message: str
    token: str


class NotificationResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    code: str
