"""Structured logging for the booking core.

Every event goes through ``redact_booking_secrets`` so bearer tokens and
CNIC numbers are masked and CNIC photos never reach the log, whatever key a
caller used. ``booking_context`` binds a reservation/service id to every
event logged inside it.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Literal

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

MASKED_KEYS = frozenset({"token", "authorization", "cnic", "cnic_number", "cnicNumber"})
DROPPED_KEYS = frozenset({"cnic_photo", "cnic_photo_data_uri", "cnicPhoto"})


def mask_sensitive(value: str | None, visible_chars: int = 4) -> str:
    """
    Mask sensitive data (tokens, CNIC numbers) for logging.

    Args:
        value: The sensitive string to mask
        visible_chars: Number of characters to show at the end

    Returns:
        Masked string (e.g., "*********4567")
    """
    if not value:
        return ""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return "*" * (len(value) - visible_chars) + value[-visible_chars:]


def redact_booking_secrets(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """structlog processor: mask tokens/CNIC numbers, drop CNIC photos."""
    for key in DROPPED_KEYS & event_dict.keys():
        event_dict[key] = "[omitted]"
    for key in MASKED_KEYS & event_dict.keys():
        value = event_dict[key]
        # already masked by the caller
        if isinstance(value, str) and not value.startswith("*"):
            event_dict[key] = mask_sensitive(value)
    return event_dict


def setup_logging(
    level: str = "INFO",
    format_type: Literal["json", "console"] = "console",
) -> None:
    """
    Configure structured logging for the booking core.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format_type: 'json' for log shipping, 'console' for a terminal
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_booking_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if format_type == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.rich_traceback,
        )

    # stderr keeps CLI tables on stdout clean
    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


@contextmanager
def booking_context(**values: Any) -> Iterator[None]:
    """Bind booking identifiers (None values skipped) to events logged inside."""
    bound = {k: v for k, v in values.items() if v is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance, usually named after the calling module."""
    return structlog.get_logger(name)
