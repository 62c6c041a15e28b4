"""New Relic logging integration helpers."""

from collections.abc import MutableMapping
from typing import Any

import newrelic.agent


def newrelic_error_processor(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that reports error-level log lines to New Relic.

    notice_error() is a no-op when the agent was never initialized, so this is
    safe to keep in the chain for local runs and tests.
    """
    if method_name in ("error", "critical", "exception"):
        newrelic.agent.notice_error()

    return event_dict
