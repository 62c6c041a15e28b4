"""Configuration utility for the Notion webhook relay.

This module provides centralized configuration management with:
- Environment variables as the only source
- Type-safe parsing of raw values
- An immutable settings snapshot built once at startup and injected into the app
"""

import os
from dataclasses import dataclass, field
from typing import Any

DEFAULT_NOTION_WEBHOOK_TOPIC = "notion.webhook.received"

EVENT_BUS_BACKENDS = ("memory", "sqs")


def parse_config_value(value: str) -> str | bool | int | float:
    if value.lower() == "true":
        return True
    elif value.lower() == "false":
        return False
    else:
        # Try to parse as a number
        try:
            return int(value)
        except ValueError:
            try:
                return float(value)
            except ValueError:
                # Return as string
                return value


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a configuration value from environment variables.

    Args:
        key: Configuration key name (e.g., "NOTION_WEBHOOK_TOPIC")
        default: Default value if key not found

    Returns:
        Parsed configuration value or default
    """
    env_value = os.environ.get(key)
    if env_value is not None:
        return parse_config_value(env_value)

    return default


def get_config_value_str(key: str, default: str | None = None) -> str | None:
    """
    Get a configuration value from environment variables. But sometimes you just want a string.

    Secrets go through here so that a purely numeric secret is not turned into an int.
    """
    return os.environ.get(key, default)


def require_config_value(key: str) -> str:
    value = os.environ.get(key)
    if value is None:
        raise ValueError(f"Environment variable {key} is required")
    return value


def get_relay_environment() -> str:
    """Get the relay environment name (local, staging, production) from env var."""
    return get_config_value_str("RELAY_ENVIRONMENT", "local") or "local"


@dataclass(frozen=True)
class RelaySettings:
    """Read-only process configuration, loaded once and passed to the app factory."""

    notion_webhook_secret: str = field(repr=False)
    notion_webhook_topic: str = DEFAULT_NOTION_WEBHOOK_TOPIC
    event_bus_backend: str = "memory"
    notion_webhook_queue_arn: str | None = None
    environment: str = "local"
    port: int = 8080

    @property
    def has_webhook_secret(self) -> bool:
        return bool(self.notion_webhook_secret)


def load_settings() -> RelaySettings:
    """Build a RelaySettings snapshot from the environment.

    Raises:
        ValueError: If the event bus backend is unknown or the SQS backend has no queue
    """
    backend = (get_config_value_str("EVENT_BUS_BACKEND", "memory") or "memory").lower()
    if backend not in EVENT_BUS_BACKENDS:
        raise ValueError(
            f"Unknown EVENT_BUS_BACKEND {backend!r}, expected one of {', '.join(EVENT_BUS_BACKENDS)}"
        )

    queue_arn = get_config_value_str("NOTION_WEBHOOK_QUEUE_ARN") or None
    if backend == "sqs" and not queue_arn:
        raise ValueError("NOTION_WEBHOOK_QUEUE_ARN is required when EVENT_BUS_BACKEND=sqs")

    return RelaySettings(
        notion_webhook_secret=get_config_value_str("NOTION_WEBHOOK_SECRET", "") or "",
        notion_webhook_topic=get_config_value_str(
            "NOTION_WEBHOOK_TOPIC", DEFAULT_NOTION_WEBHOOK_TOPIC
        )
        or DEFAULT_NOTION_WEBHOOK_TOPIC,
        event_bus_backend=backend,
        notion_webhook_queue_arn=queue_arn,
        environment=get_relay_environment(),
        port=int(get_config_value("RELAY_PORT", 8080)),
    )
