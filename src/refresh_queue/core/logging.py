"""
Structured logging for refresh-queue.

Configures structlog once per process and hands out bound loggers. Queue
modules log key-value events (``queue_initialized``, ``name_dispatched``,
``stale_name_skipped``...) rather than formatted strings, so the output can be
shipped to a log aggregator as JSON or read on a terminal.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="refresh-queue")
              │
              ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars        ◄── bind_context() / LogContext
          3. add_log_level
          4. _add_service_metadata
          5. _ecs_field_names         (JSON only: @timestamp, log.level, log.logger)
          6. JSONRenderer | ConsoleRenderer

Examples:
    >>> from refresh_queue.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("queue_initialized", records=3)

Tags:
    logging, structlog, observability, json-logging, refresh-queue
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from refresh_queue.core.settings import RefreshQueueSettings

_SERVICE_NAME = "refresh-queue"

# structlog key -> ECS field name, applied to JSON output only.
_ECS_FIELDS = {
    "timestamp": "@timestamp",
    "level": "log.level",
    "logger_name": "log.logger",
}


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Stamp every event with the configured service name."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _ecs_field_names(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename structlog keys to their ECS equivalents."""
    for key, field in _ECS_FIELDS.items():
        if key in event_dict:
            event_dict[field] = event_dict.pop(key)
    return event_dict


def _processors(json_format: bool, add_timestamp: bool) -> list[Processor]:
    processors: list[Processor] = []
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]
    if json_format:
        processors += [
            _ecs_field_names,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "refresh-queue",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    structlog.configure(
        processors=_processors(json_format, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[level.upper()]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: RefreshQueueSettings | None = None) -> None:
    """Configure logging from ``RefreshQueueSettings`` (default: ``get_settings()``)."""
    from refresh_queue.core.settings import get_settings

    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.json_logs,
        service=settings.service_name,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``).

    Print loggers carry no name of their own, so ``name`` travels as the
    ``logger_name`` field (``log.logger`` in JSON output). The returned proxy
    is lazy: calling this at import time is fine before ``configure_logging``.
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger_name=name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs.

    Example:
        bind_context(queue="test-groups")
        logger.info("send_started")  # Includes queue
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        async with LogContext(queue="test-groups", consumer="updater"):
            await queue.send(ctx, sink, frequency)
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())

    async def __aenter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    async def __aexit__(self, *args) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
