#!/usr/bin/env python3
"""
Send a signed Notion webhook to a running relay.

Signs the body with NOTION_WEBHOOK_SECRET exactly the way Notion does, so the request exercises the
real verification path. Use --handshake to send the one-time verification payload instead of a
page.content_updated notification.

    NOTION_WEBHOOK_SECRET=... python scripts/send_notion_webhook.py --url http://localhost:8080
"""

import argparse
import json
import os
import sys
import uuid
from datetime import UTC, datetime

import requests

from connectors.notion import NOTION_SIGNATURE_HEADER, NotionWebhookVerifier

WEBHOOK_PATH = "/api/v1/webhooks/notion"


def create_notification_payload(page_id: str | None = None) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "timestamp": datetime.now(UTC).isoformat(),
        "workspace_id": "local-workspace",
        "subscription_id": "local-subscription",
        "integration_id": "local-integration",
        "type": "page.content_updated",
        "attempt_number": 1,
        "entity": {"id": page_id or str(uuid.uuid4()), "type": "page"},
        "authors": [{"id": "local-user", "type": "person"}],
    }


def create_handshake_payload() -> dict:
    return {"verification_token": f"secret_{uuid.uuid4().hex}"}


def build_signed_request(payload: dict, secret: str) -> tuple[bytes, dict[str, str]]:
    """Serialize `payload` once and sign those exact bytes."""
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        NOTION_SIGNATURE_HEADER: NotionWebhookVerifier().sign(secret, body),
    }
    return body, headers


def main():
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0])
    parser.add_argument("--url", default="http://localhost:8080", help="Relay base URL")
    parser.add_argument("--handshake", action="store_true", help="Send a verification payload")
    parser.add_argument("--page-id", help="Entity id for the notification payload")
    args = parser.parse_args()

    secret = os.environ.get("NOTION_WEBHOOK_SECRET")
    if not secret:
        print("❌ NOTION_WEBHOOK_SECRET must be set")
        sys.exit(1)

    if args.handshake:
        payload = create_handshake_payload()
    else:
        payload = create_notification_payload(args.page_id)
    body, headers = build_signed_request(payload, secret)

    url = f"{args.url.rstrip('/')}{WEBHOOK_PATH}"
    print(f"Sending {'handshake' if args.handshake else 'notification'} to: {url}")
    print(f"Payload size: {len(body):,} bytes")

    try:
        response = requests.post(url, data=body, headers=headers, timeout=30)
    except requests.RequestException as e:
        print(f"❌ Request failed: {e}")
        sys.exit(1)

    print(f"{'✅' if response.ok else '❌'} {response.status_code}: {response.text}")
    if not response.ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
