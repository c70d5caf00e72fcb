"""
Structured logging for Luna (structlog over the stdlib logging module).

Console output for development, one JSON object per line when
LUNA_LOG_FORMAT=json. Every log line emitted while a request is being
processed carries that request's event_id (see request_context).

Usage:
    from tools.logging_config import get_logger, request_context, setup_logging

    setup_logging()
    logger = get_logger(__name__)

    with request_context("3f2a...", module="tasks"):
        logger.info("intent_classified", intent="general/time", confidence=0.98)
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator, TextIO

import structlog

# Chatty libraries kept at WARNING unless debugging
_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the root logger.

    Args:
        level: Log level name; defaults to LUNA_LOG_LEVEL or INFO.
        json_output: JSON lines instead of console rendering; defaults to
            LUNA_LOG_FORMAT == "json".
        stream: Where to write; defaults to stderr so stdout stays clean
            for CLI output.
    """
    level = (level or os.environ.get("LUNA_LOG_LEVEL") or "INFO").upper()
    if json_output is None:
        json_output = os.environ.get("LUNA_LOG_FORMAT", "").lower() == "json"
    numeric_level = getattr(logging, level, logging.INFO)

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        final = [structlog.dev.ConsoleRenderer(colors=False)]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def request_context(event_id: str, **fields: Any) -> Iterator[None]:
    """Bind event_id (and any extra fields) to every log line in the block."""
    with structlog.contextvars.bound_contextvars(event_id=event_id, **fields):
        yield


__all__ = ["get_logger", "request_context", "setup_logging"]
