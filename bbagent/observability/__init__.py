"""Observability module for logging."""

from bbagent.observability.logging import (
    bind_command_context,
    configure_logging,
    get_logger,
)


__all__ = [
    "bind_command_context",
    "configure_logging",
    "get_logger",
]
