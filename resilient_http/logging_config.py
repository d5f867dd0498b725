"""Structured logging configuration using structlog."""

import datetime
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict


def add_timestamp(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to log entries."""
    event_dict["timestamp"] = (
        datetime.datetime.now(datetime.timezone.utc)
        .isoformat()
        .replace("+00:00", "Z")
    )
    return event_dict


def merge_event_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Flatten the ``data`` payload of telemetry and port calls into the entry.

    Payload keys that collide with keys already on the entry are prefixed
    with ``data_``. Events tracked through ``StructlogTelemetry.track`` are
    tagged with ``channel="telemetry"``.
    """
    if event_dict.pop("telemetry", False):
        event_dict["channel"] = "telemetry"
    data = event_dict.get("data")
    if not isinstance(data, dict):
        return event_dict
    del event_dict["data"]
    for key, value in data.items():
        event_dict[f"data_{key}" if key in event_dict else key] = value
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Format type ('json' for production, 'console' for development)
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    shared_processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        merge_event_data,
        add_timestamp,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors = shared_processors + [structlog.processors.JSONRenderer()]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # httpx logs every request at INFO
    if log_level.upper() != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> Any:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
