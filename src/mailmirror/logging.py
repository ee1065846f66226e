"""Structured logging configuration using structlog."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

# Event keys that may carry credentials (service key, OAuth and provider secrets)
SECRET_KEYS = frozenset(
    {"api_key", "key", "token", "refresh_token", "client_secret", "openai_api_key"}
)
REDACTED = "[redacted]"


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential-bearing keys before rendering."""
    for name in SECRET_KEYS.intersection(event_dict):
        if event_dict[name]:
            event_dict[name] = REDACTED
    return event_dict


def configure_logging(debug: bool = False) -> None:
    """Configure structlog for JSON output on stdout.

    Stdlib loggers (uvicorn, googleapiclient) are routed through the same
    stream so pipeline and HTTP events interleave in one log. The openai and
    httpx clients log each provider request at INFO; those stay at WARNING
    unless debug is on, since enrichment makes one request per message.

    Args:
        debug: Enable debug-level logging when True.
    """
    level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            redact_secrets,
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True

    client_level = logging.DEBUG if debug else logging.WARNING
    for name in ["openai", "httpx"]:
        logging.getLogger(name).setLevel(client_level)

    # googleapiclient logs every discovery cache miss at WARNING
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
