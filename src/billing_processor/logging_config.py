"""Structured logging configuration using structlog.

Every billing event is a snake_case event name plus keyword context. The
owner and provider an operation works on are bound once per operation with
``owner_context`` so adapter-level events (which never see the owner) still
carry them.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor


def add_owner(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Normalize the owner field so every billing event is searchable by it."""
    owner = event_dict.pop("owner", None)
    if owner is not None:
        event_dict["owner"] = str(owner)
    return event_dict


@contextmanager
def owner_context(owner: str, provider: str | None = None) -> Iterator[None]:
    """Bind ``owner`` (and ``provider``) to every event logged in the block."""
    context: dict[str, Any] = {"owner": owner}
    if provider is not None:
        context["provider"] = provider
    with structlog.contextvars.bound_contextvars(**context):
        yield


def _base_processors(include_owner: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_owner:
        processors.append(add_owner)
    return processors


def configure_logging(
    log_level: str = "INFO",
    format_as_json: bool = True,
    include_owner: bool = True,
) -> None:
    """
    Configure structured logging for the service.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_as_json: Render JSON lines; otherwise the colored console renderer
        include_owner: Normalize the ``owner`` key on every event
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if format_as_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*_base_processors(include_owner), renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)
