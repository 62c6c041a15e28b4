"""Webhook verification protocol and the shared HMAC signing-secret verifier.

Verifiers are pure: they look only at the signature material and the raw body
and raise a WebhookError subclass on failure. Provider-specific subclasses live
with their connector and only pick the header name and signature prefix.
"""

import hashlib
import hmac
from typing import Protocol

from notion_relay.gatekeeper.errors import (
    ConfigurationMissing,
    MalformedSignature,
    MissingSignature,
    SignatureMismatch,
)
from notion_relay.gatekeeper.models import RawPayload, SignatureProof


class WebhookVerifier(Protocol):
    """Protocol for webhook signature verifiers."""

    signature_header: str

    def verify(self, proof: SignatureProof, payload: RawPayload) -> None:
        """Verify the signature in `proof` over `payload`.

        Raises:
            ConfigurationMissing: The shared secret is empty
            MissingSignature: No signature header was supplied
            MalformedSignature: The header does not look like `<prefix><digest>`
            SignatureMismatch: The digest does not match the payload
        """
        ...


def compute_signature(secret: str, payload: RawPayload) -> str:
    """Lowercase hex HMAC-SHA256 of the payload keyed by the secret."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class BaseSigningSecretVerifier:
    """Base class for providers that sign the raw body with HMAC-SHA256.

    Subclasses define:
    - signature_header: lowercased request header that carries the signature
    - signature_prefix: algorithm prefix in front of the hex digest (e.g. "sha256=")
    """

    signature_header: str
    signature_prefix: str = "sha256="

    def verify(self, proof: SignatureProof, payload: RawPayload) -> None:
        if not proof.secret:
            raise ConfigurationMissing()

        if not proof.signature:
            raise MissingSignature()

        if not proof.signature.startswith(self.signature_prefix):
            raise MalformedSignature(f"expected {self.signature_prefix!r} prefix")

        supplied_digest = proof.signature[len(self.signature_prefix) :]
        if not supplied_digest:
            raise MalformedSignature("empty digest")

        expected_digest = compute_signature(proof.secret, payload)

        # compare_digest handles unequal lengths without an early exit
        if not hmac.compare_digest(
            expected_digest.encode("ascii"), supplied_digest.encode("utf-8")
        ):
            raise SignatureMismatch()

    def sign(self, secret: str, payload: RawPayload) -> str:
        """Header value a sender would attach to `payload`. Used by tests and local tooling."""
        return self.signature_prefix + compute_signature(secret, payload)
