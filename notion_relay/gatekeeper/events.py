"""Domain event construction for accepted webhook notifications."""

import uuid
from typing import Protocol

from notion_relay.gatekeeper.models import DomainEvent, RawPayload

WEBHOOK_EVENT_ID_PREFIX = "webhook"


class IdGenerator(Protocol):
    """Source of globally unique identifiers."""

    def new_id(self, prefix: str) -> str: ...


class UUIDGenerator:
    """IdGenerator backed by uuid4: `<prefix>_<uuid>`, or a bare uuid when prefix is empty."""

    def new_id(self, prefix: str) -> str:
        value = str(uuid.uuid4())
        return f"{prefix}_{value}" if prefix else value


def build_webhook_event(payload: RawPayload, id_generator: IdGenerator) -> DomainEvent:
    """Wrap an accepted notification payload in a new DomainEvent.

    A fresh id is requested from `id_generator` on every call.
    """
    return DomainEvent(id=id_generator.new_id(WEBHOOK_EVENT_ID_PREFIX), payload=bytes(payload))
