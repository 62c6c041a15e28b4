"""Relay logging config

Logging is configured when this module is imported. structlog handles everything; output is pretty-printed
when RELAY_ENVIRONMENT='local' and JSON everywhere else, so it can be shipped to New Relic as-is.

```
from notion_relay.utils.logging import get_logger

logger = get_logger(__name__)
logger.info("Published webhook event", event_id="webhook_123", topic="notion.webhook.received")
```

Request-scoped fields go through contextvars:

```
from notion_relay.utils.logging import LogContext

with LogContext(event_id=event.id):
    logger.info("Publishing")  # includes event_id
```

Library code using `logging.getLogger()` (uvicorn, botocore) is routed through the same processors.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import structlog
import structlog.contextvars

from notion_relay.utils.config import get_relay_environment
from notion_relay.utils.newrelic_logging import newrelic_error_processor


def _use_console_renderer() -> bool:
    """LOG_RENDERER=console|json overrides the environment-based default."""
    log_renderer = os.getenv("LOG_RENDERER", "").lower()
    if log_renderer == "console":
        return True
    if log_renderer == "json":
        return False
    return get_relay_environment() == "local"


def _get_log_renderer() -> structlog.types.Processor:
    if _use_console_renderer():
        return structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=0,
            force_colors=False,
            repr_native_str=False,
            exception_formatter=structlog.dev.plain_traceback,
            sort_keys=True,
            event_key="message",
        )
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    """Configure structlog and route the standard library root logger through it."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.contextvars.merge_contextvars,
        structlog.processors.EventRenamer("message"),
        newrelic_error_processor,
        structlog.stdlib.filter_by_level,  # Must come after add_log_level
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # filter_by_level expects a structlog logger, stdlib records are already level-filtered
    foreign_processors = [p for p in shared_processors if p != structlog.stdlib.filter_by_level]
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_get_log_renderer(),
            foreign_pre_chain=foreign_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(stream_handler)

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    numeric_log_level = getattr(logging, log_level, logging.INFO)
    root_logger.setLevel(numeric_log_level)

    if numeric_log_level <= logging.DEBUG:
        for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
            uvicorn_logger = logging.getLogger(logger_name)
            if uvicorn_logger.level > numeric_log_level:
                uvicorn_logger.setLevel(numeric_log_level)


configure_logging()


def add_log_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()


LogContext = structlog.contextvars.bound_contextvars


def get_logger(name: str, **kwargs: Any) -> structlog.BoundLogger:
    """Get a structlog logger, optionally with initial bound values."""
    return structlog.get_logger(name, **kwargs)


def get_uvicorn_log_config() -> dict[str, Any]:
    """Uvicorn logging dict config that renders access and error logs like ours."""
    handler = {
        "formatter": "default",
        "class": "logging.StreamHandler",
        "stream": "ext://sys.stdout",
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": _get_log_renderer(),
                "foreign_pre_chain": [
                    structlog.stdlib.add_log_level,
                    structlog.stdlib.add_logger_name,
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.processors.EventRenamer("message"),
                ],
            },
        },
        "handlers": {"default": handler},
        "loggers": {
            name: {"handlers": ["default"], "level": "INFO", "propagate": False}
            for name in ("", "uvicorn", "uvicorn.access", "uvicorn.error")
        },
    }
