"""Observability module for sessionvault.

Structured logging through structlog: configure_logging, get_logger,
bind_context, unbind_context, clear_context.
"""

from sessionvault.observability.logging import (
    LoggingConfig,
    LogMode,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    mask_url_credentials,
    unbind_context,
)

__all__ = [
    "LoggingConfig",
    "LogMode",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "mask_url_credentials",
    "unbind_context",
]
