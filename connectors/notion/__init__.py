from connectors.notion.notion_webhook_handler import (
    NOTION_SIGNATURE_HEADER,
    NotionWebhookVerifier,
    classify_notion_webhook,
    extract_notion_webhook_metadata,
)

__all__ = [
    "NOTION_SIGNATURE_HEADER",
    "NotionWebhookVerifier",
    "classify_notion_webhook",
    "extract_notion_webhook_metadata",
]
