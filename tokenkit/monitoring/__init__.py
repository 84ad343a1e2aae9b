"""
tokenkit Monitoring

Structured logging setup.
"""

from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    configure_logging_from_settings,
    get_logger,
    unbind_context,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "unbind_context",
]
