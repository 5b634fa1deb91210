"""
Mahoya Logging Infrastructure

Exports the structured logging setup and the log context helpers.
"""

from mahoya.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    dropped_record_count,
    get_log_context,
    get_logger,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "dropped_record_count",
    "LogContext",
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "ContextFilter",
    "JSONFormatter",
]
