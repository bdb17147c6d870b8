"""Structured logging configuration."""

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(
    level: int = logging.WARNING,
    output: TextIO | None = None,
    json_format: bool = True,
) -> None:
    """Configure structured logging for the application.

    Logs always go to stderr so that stdout carries only command output.

    Args:
        level: Logging level (default: WARNING).
        output: Output stream (default: stderr at call time).
        json_format: Whether to use JSON format (default: True).
    """
    stream = output or sys.stderr

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=level,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger instance.

    Args:
        name: Optional logger name.

    Returns:
        Bound logger instance.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_command_context(command: str, workspace: str | None = None) -> None:
    """Bind CLI command context to all subsequent log messages.

    Args:
        command: Name of the command being run.
        workspace: Active workspace, if known.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command)
    if workspace:
        structlog.contextvars.bind_contextvars(workspace=workspace)
