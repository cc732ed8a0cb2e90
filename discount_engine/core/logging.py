import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

MASKED_FIELDS = ("holder_identity", "customer_email")


def mask_holder_identity(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Replace contact identifiers with their e-mail domain before rendering."""
    for field in MASKED_FIELDS:
        value = event_dict.get(field)
        if not isinstance(value, str):
            continue
        _, _, domain = value.rpartition("@")
        event_dict[field] = f"***@{domain}" if domain and domain != value else "***"
    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            mask_holder_identity,
            timestamper,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
